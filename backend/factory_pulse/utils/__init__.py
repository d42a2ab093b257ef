# backend/factory_pulse/utils/__init__.py
