from streamcast_player.exceptions import streamcast_exception


class BlobNotFoundException(streamcast_exception.StreamcastException):

    def __init__(self, blob_key: str, message: str = None):
        self.blob_key = blob_key
        self.message = f"Uploaded media {blob_key} is not stored on this device."
        if message:
            self.message = f"{self.message} {message}"
        super().__init__(self.message)
