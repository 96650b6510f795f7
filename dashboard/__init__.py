# dashboard/__init__.py

"""
HTTP API IntensifyHQ на FastAPI.
"""
