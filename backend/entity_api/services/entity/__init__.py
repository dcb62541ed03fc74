"""
Entity management kernel.

IMPORT EXAMPLES:
    from entity_api.services.entity.registry import EntityRegistry
    from entity_api.services.entity.hooks import HookRegistry, Hook, HookContext
    from entity_api.services.entity.service import EntityService
    from entity_api.services.entity.descriptor import EntityDescriptor, Converters
"""
