class StreamcastException(Exception):
    """Base class for errors raised by the Streamcast player."""

    def __init__(self, message: str = None):
        self.message = message or self.__class__.__name__
        super().__init__(self.message)
