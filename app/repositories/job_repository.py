"""
Job repository.

Jobs are maintained by the admin screens; the application core reads them
to snapshot section configuration and check the application window.
"""

from app.models.job import Job
from .base import BaseRepository


class JobRepository(BaseRepository[Job]):

    def __init__(self):
        super().__init__(Job)
