# === FILE: site_mirror/cli.py ===
#!/usr/bin/env python3
"""
Точка входа для запуска зеркалирования SiteMirror через командную строку.

Команды:
  mirror URL...   Зеркалировать сайты (одно задание на URL) и вывести/сохранить отчёты
  config          Показать текущие настройки

Общие опции:
  --config PATH       Путь к YAML/JSON-конфигу (default: configs/default.yaml, если есть)
  --log-level LEVEL   Уровень логирования (DEBUG, INFO, ...)
  --log-file PATH     Файл для логов (stdout, если не указан)
  --log-format FORMAT Формат логирования

Команда mirror опции:
  --depth N, --pages N     Границы обхода (по умолчанию из настроек)
  --all-domains            Обходить и чужие хосты
  --name NAME              Имя папки вывода
  --title-suffix TEXT      Суффикс заголовка страниц
  --home-only              Только главная страница
  --sitemap-domain URL     Префикс <loc> в sitemap.xml
  --replace 'FIND=>REPL'   Правило текстовой замены (можно повторять)
  --rules PATH             Файл с правилами замены (YAML/JSON)
  --json PATH / --html PATH / --pretty

Пример:
  site-mirror mirror https://example.com --depth 2 --pages 50 --title-suffix Archive --pretty
"""
import json
import sys
from pathlib import Path
from typing import List, Optional, Tuple

import click
from pydantic import ValidationError

from site_mirror import __version__
from site_mirror.config import ReplacementRule, load_rules, load_settings
from site_mirror.engine import Engine
from site_mirror.logger import DEFAULT_FORMAT, init_logging
from site_mirror.report.html_report import render_html
from site_mirror.report.json_report import render_json
from site_mirror.status import task_status
from site_mirror.tasks import TaskQueueFullError, TaskStatus

CONTEXT_SETTINGS = dict(help_option_names=["--help"])
RULE_SEPARATOR = "=>"


def print_error(message: str):
    click.secho(message, fg='red', err=True)
    sys.exit(1)


def parse_rule(value: str) -> ReplacementRule:
    """``'FIND=>REPL'`` → ReplacementRule."""
    find, sep, replace_with = value.partition(RULE_SEPARATOR)
    if not sep or not find:
        raise click.BadParameter(f"expected FIND{RULE_SEPARATOR}REPLACEMENT, got {value!r}")
    return ReplacementRule(find=find, replace_with=replace_with)


@click.group(context_settings=CONTEXT_SETTINGS)
@click.version_option(__version__, '--version', '-v', message='SiteMirror, version %(version)s')
@click.option(
    '--config', '-c', 'config_path',
    default=None,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help='Путь к файлу настроек YAML/JSON.'
)
@click.option(
    '--log-level', 'log_level',
    default='INFO', show_default=True,
    type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']),
    help='Уровень логирования'
)
@click.option(
    '--log-file', 'log_file',
    default=None,
    type=click.Path(writable=True, dir_okay=False, path_type=Path),
    help='Путь к файлу логов (stdout, если не указан)'
)
@click.option(
    '--log-format', 'log_format',
    default=DEFAULT_FORMAT,
    show_default=True,
    help='Строка формата для логов'
)
@click.pass_context
def cli(ctx, config_path, log_level, log_file, log_format):
    """Группа команд SiteMirror CLI."""
    init_logging(
        level=log_level,
        log_file=str(log_file) if log_file else None,
        log_format=log_format
    )
    try:
        settings = load_settings(config_path)
    except (OSError, ValueError, TypeError) as e:
        print_error(f'Ошибка загрузки конфигурации: {e}')
    ctx.ensure_object(dict)
    ctx.obj['settings'] = settings


@cli.command('mirror', context_settings=CONTEXT_SETTINGS)
@click.argument('urls', nargs=-1, required=True)
@click.option('--depth', '-d', 'max_depth', type=click.IntRange(min=0), default=None,
              help='Максимальная глубина обхода')
@click.option('--pages', '-p', 'max_pages', type=click.IntRange(min=1), default=None,
              help='Максимальное число страниц')
@click.option('--all-domains', is_flag=True, help='Не ограничиваться исходным хостом')
@click.option('--name', 'output_name', default=None, help='Имя папки вывода')
@click.option('--title-suffix', 'title_suffix', default=None, help='Суффикс заголовка страниц')
@click.option('--home-only', is_flag=True, help='Сохранить только главную страницу')
@click.option('--sitemap-domain', 'sitemap_domain', default=None, help='Префикс <loc> в sitemap.xml')
@click.option('--replace', '-r', 'replace', multiple=True, help="Правило замены 'FIND=>REPL'")
@click.option(
    '--rules', 'rules_path',
    default=None,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help='Файл с правилами замены (YAML/JSON список {find, replaceWith})'
)
@click.option(
    '--json', '-j', 'json_output',
    default=None,
    type=click.Path(writable=True, dir_okay=False, path_type=Path),
    help='Сохранить JSON-отчёт в файл'
)
@click.option(
    '--html', 'html_output',
    default=None,
    type=click.Path(writable=True, dir_okay=False, path_type=Path),
    help='Сохранить HTML-отчёт в файл'
)
@click.option('--pretty', is_flag=True, help='Преформатировать JSON-вывод (отступ 2)')
@click.pass_context
def mirror(ctx, urls: Tuple[str, ...], max_depth: Optional[int], max_pages: Optional[int],
           all_domains: bool, output_name: Optional[str], title_suffix: Optional[str], home_only: bool,
           sitemap_domain: Optional[str], replace: Tuple[str, ...], rules_path: Optional[Path],
           json_output: Optional[Path], html_output: Optional[Path], pretty: bool):
    """Зеркалировать сайты и сгенерировать отчёты."""
    settings = ctx.obj['settings']

    rules: List[ReplacementRule] = []
    if rules_path is not None:
        try:
            rules.extend(load_rules(rules_path))
        except (OSError, ValueError, TypeError) as e:
            print_error(f'Ошибка загрузки правил замены: {e}')
    rules.extend(parse_rule(value) for value in replace)

    try:
        configs = [
            settings.build_config(
                url,
                max_depth=max_depth,
                max_pages=max_pages,
                same_domain=False if all_domains else None,
                output_name=output_name,
                title_suffix=title_suffix,
                debug_only_home=home_only or None,
                sitemap_domain=sitemap_domain,
                replace_rules=tuple(rules),
            )
            for url in urls
        ]
    except ValidationError as e:
        print_error(f'Неверные параметры задания: {e}')

    try:
        tasks = Engine(settings).mirror(configs)
    except TaskQueueFullError as e:
        print_error(f'Очередь заданий переполнена: {e}')

    statuses = [task_status(t) for t in tasks]

    if not json_output and not html_output:
        indent = 2 if pretty else None
        click.echo(json.dumps(statuses, ensure_ascii=False, indent=indent))

    if json_output:
        try:
            saved_json = render_json(statuses, json_output, pretty=pretty)
            click.echo(f'JSON report: {saved_json}')
        except OSError as e:
            print_error(f'Ошибка при сохранении JSON: {e}')

    if html_output:
        try:
            saved_html = render_html(statuses, html_output)
            click.echo(f'HTML report: {saved_html}')
        except OSError as e:
            print_error(f'Ошибка при сохранении HTML: {e}')

    if any(t.status is TaskStatus.FAILED for t in tasks):
        sys.exit(1)


@cli.command('config', context_settings=CONTEXT_SETTINGS)
@click.pass_context
def show_config(ctx):
    """Показать текущие настройки в JSON."""
    settings = ctx.obj['settings']
    click.echo(settings.model_dump_json(indent=2))


if __name__ == "__main__":
    cli()
