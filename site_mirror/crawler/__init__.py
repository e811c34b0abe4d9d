"""site_mirror.crawler: обход сайта в ширину, загрузка и раскладка файлов."""
