from apiprobe.models.project import Project
from apiprobe.models.endpoint import Endpoint
from apiprobe.models.endpoint_test import EndpointTest

__all__ = [
    "Project",
    "Endpoint",
    "EndpointTest",
]
