"""
Cooperative cancellation. A token is threaded through every collaborator call, but flows only look
at it where they are about to escalate to the next fallback (e.g. prompting the user). Calls that
are already in flight are not aborted.
"""


class CancellationToken:
    def __init__(self):
        self._cancelled = False

    @property
    def is_cancellation_requested(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        self._cancelled = True


def is_cancelled(token) -> bool:
    return token is not None and token.is_cancellation_requested
