"""
HTTP routers.

- entities.py: generic CRUD dispatcher, one route set per registered entity
- hooks.py: hook administration
"""
