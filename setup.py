# setup.py
from setuptools import setup, find_packages

setup(
    name="site_mirror",
    version="0.1.0",
    description="Асинхронное зеркалирование сайтов SiteMirror",
    packages=find_packages(exclude=("tests", "tests.*")),
    package_data={
        "site_mirror": [
            "assets/favicon.ico",
            "assets/_mirror/*.js",
            "report/templates/*.j2",
        ],
    },
    include_package_data=True,
    install_requires=[
        # те же зависимости, что и в requirements.txt
        "aiohttp>=3.9",
        "beautifulsoup4>=4.12",
        "click>=8.1",
        "jinja2>=3.1",
        "lxml>=5.0",
        "pydantic>=2.5",
        "PyYAML>=6.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.4",
            "pytest-asyncio>=0.24",
        ],
    },
    entry_points={
        "console_scripts": [
            "site-mirror=site_mirror.cli:cli",
        ],
    },
    python_requires=">=3.11",
)
