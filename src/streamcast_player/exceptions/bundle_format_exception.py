from streamcast_player.exceptions import streamcast_exception


class BundleFormatException(streamcast_exception.StreamcastException):

    def __init__(self, source: str, message: str = None):
        self.source = source
        self.message = f"Could not parse bundle from {source}."
        if message:
            self.message = f"{self.message} {message}"
        super().__init__(self.message)
