from typing import Optional


class FilmPipelineError(Exception):
    """
    Base for every error raised by the film pipeline and its collaborators.
    """


class PipelineConfigurationError(FilmPipelineError, ValueError):
    """
    Invalid configuration or unusable backend. Fatal to pipeline construction.
    """


class ColorSpaceMismatchError(PipelineConfigurationError):
    """
    Image color space differs from the pipeline's working space.
    """


class StageExecutionError(FilmPipelineError, RuntimeError):
    """
    A structural stage (tone curve, LUT) could not run. The capture is lost.
    """

    def __init__(self, message: str, stage: Optional[str] = None):
        super().__init__(message)
        self.stage = stage


class CaptureError(FilmPipelineError):
    """
    Capture source or storage collaborator failed.
    """
