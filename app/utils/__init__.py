# app/utils/__init__.py
"""
Utilidades compartidas: montos en centavos con formato es-AR
(:mod:`app.utils.money`) y paginación del catálogo
(:mod:`app.utils.pagination`).
"""
