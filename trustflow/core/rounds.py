class RequestGeneration:
    """Monotonic token used to discard results of superseded rounds.

    Every new round takes a token with next(); when its results arrive they
    are applied only if is_current(token) still holds. Superseded requests
    are not aborted, their results are just dropped.
    """

    def __init__(self):
        self._value = 0

    def next(self) -> int:
        self._value += 1
        return self._value

    def is_current(self, token: int) -> bool:
        return token == self._value
