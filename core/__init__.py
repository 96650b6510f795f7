# core/__init__.py

"""
Ядро IntensifyHQ: модели, хранилище метрик, расчет focus score, серии и бейджи.
"""
