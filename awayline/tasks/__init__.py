from awayline.tasks.number_tasks import (
    assign_active_subscribers,
    assign_number_for_user,
    dispatch,
    notify_missed_call,
    release_expired_numbers,
)

__all__ = [
    'assign_active_subscribers',
    'assign_number_for_user',
    'dispatch',
    'notify_missed_call',
    'release_expired_numbers',
]
