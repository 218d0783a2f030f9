from dataclasses import replace

from assignments.errors import CapacityExceededError, InvalidStateError
from providers.models import Provider


def reserve_slot(provider: Provider) -> Provider:
    """
    Called inside the create transaction, after the provider row is locked.
    Takes one unit of capacity or refuses when the provider is full.
    """
    if provider.current_users >= provider.max_users:
        raise CapacityExceededError(provider.id, provider.max_users)

    # Because Provider is a frozen dataclass, we must return a new instance via replace
    return replace(provider, current_users=provider.current_users + 1)


def release_slot(provider: Provider) -> Provider:
    """
    Gives back the capacity held by an assignment that was cancelled or completed.
    """
    if provider.current_users <= 0:
        raise InvalidStateError(f"Provider {provider.id} has no reserved capacity to release")

    return replace(provider, current_users=provider.current_users - 1)
