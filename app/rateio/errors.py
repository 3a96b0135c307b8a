class SyncError(Exception):
    """
    Request-terminating failure of a sync call.
    status is the HTTP status to answer with; details is an optional
    JSON-serializable payload (e.g. offending sheet lines).
    """

    def __init__(self, message, status=400, details=None):
        super().__init__(message)
        self.message = message
        self.status = status
        self.details = details
