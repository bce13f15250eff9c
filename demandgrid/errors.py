class PipelineError(Exception):
    """Base class for pipeline errors
       message - explanation of the error
    """
    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class MalformedInput(PipelineError, ValueError):
    """Raw input file does not follow the block layout or holds bad tokens
    """


class InvalidInput(PipelineError, ValueError):
    """Caller supplied parameters that do not fit the dataset
    """


class ShapeMismatch(PipelineError, ValueError):
    """A reshape or reconstruction produced an unexpected cell or row count
    """


class ExternalEstimatorFailure(PipelineError, RuntimeError):
    """The imputation or smoothing estimator failed or left gaps behind
    """
