"""
Entity identity helpers.

Entities are arbitrary application objects. They are identified by:
- ``sync_identity()`` if the entity defines it, else its ``id`` attribute
- ``sync_entity_type`` if the entity defines it, else its class name
"""

from typing import Any, Optional

from .core.exceptions import SyncPreconditionError


IDENTITY_HOOK = "sync_identity"
ENTITY_TYPE_ATTRIBUTE = "sync_entity_type"
DEFAULT_ID_ATTRIBUTE = "id"


def entity_type_name(entity: Any) -> str:
    """Return the type name under which an entity's sync record is stored."""
    name = getattr(entity, ENTITY_TYPE_ATTRIBUTE, None)
    if name:
        return str(name)
    return type(entity).__name__


def entity_identifier(entity: Any, id_attribute: str = DEFAULT_ID_ATTRIBUTE) -> Optional[str]:
    """
    Return the entity's identifier as a string, or None if not assigned yet.

    Args:
        entity: The entity
        id_attribute: Attribute read when the entity has no identity hook
    """
    hook = getattr(entity, IDENTITY_HOOK, None)
    if callable(hook):
        value = hook()
    else:
        value = getattr(entity, id_attribute, None)

    if value is None or value == "":
        return None
    return str(value)


def require_identifier(entity: Any, id_attribute: str = DEFAULT_ID_ATTRIBUTE) -> str:
    """
    Return the entity's identifier.

    Raises:
        SyncPreconditionError: If the entity has no identifier yet
    """
    identifier = entity_identifier(entity, id_attribute)
    if identifier is None:
        entity_type = entity_type_name(entity)
        raise SyncPreconditionError(
            f"Cannot track sync state for {entity_type} without an identifier; "
            "persist the entity first",
            entity_type=entity_type,
        )
    return identifier
