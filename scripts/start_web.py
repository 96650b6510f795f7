#!/usr/bin/env python3
"""
Скрипт запуска API IntensifyHQ
Использование: python scripts/start_web.py [--port PORT] [--dev] [--host HOST] [--reload]
"""

import sys
import argparse
import logging
from pathlib import Path

# Добавляем корневую папку в Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from dashboard.config import settings
from dashboard.app import run_dashboard

logger = logging.getLogger(__name__)

def main():
    """Главная функция запуска веб-сервера"""

    # Парсинг аргументов
    parser = argparse.ArgumentParser(description='Запуск API IntensifyHQ')
    parser.add_argument('--port', type=int, default=settings.DASHBOARD_PORT, help='Порт сервера')
    parser.add_argument('--host', default=settings.DASHBOARD_HOST, help='Хост сервера')
    parser.add_argument('--dev', action='store_true', help='Режим разработки')
    parser.add_argument('--reload', action='store_true', help='Автоперезагрузка при изменениях')

    args = parser.parse_args()

    if args.dev:
        logger.info("🔧 Режим разработки активирован")

    if settings.DOCS_URL:
        logger.info(f"📚 API документация: http://{args.host}:{args.port}{settings.DOCS_URL}")

    try:
        run_dashboard(host=args.host, port=args.port, dev=args.dev or None, reload=args.reload)
    except OSError as e:
        logger.error(f"💥 Критическая ошибка: {e}")
        sys.exit(1)

if __name__ == "__main__":
    main()
