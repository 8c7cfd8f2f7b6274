from .auth import User, SessionToken, ROLES
from .security import SecurityEvent
from .materials import Material, MaterialMovement, MATERIAL_TYPES, MATERIAL_UNITS
from .products import Product, PRODUCT_CATEGORIES, PRODUCT_STATUSES
from .production import (
    ProductionLog,
    ProductionLogEntry,
    ProductionMaterialUsage,
    ProductionDefect,
    SHIFTS,
    LOG_ACTIONS,
)

__all__ = [
    'User', 'SessionToken', 'ROLES', 'SecurityEvent',
    'Material', 'MaterialMovement', 'MATERIAL_TYPES', 'MATERIAL_UNITS',
    'Product', 'PRODUCT_CATEGORIES', 'PRODUCT_STATUSES',
    'ProductionLog', 'ProductionLogEntry', 'ProductionMaterialUsage', 'ProductionDefect',
    'SHIFTS', 'LOG_ACTIONS',
]
