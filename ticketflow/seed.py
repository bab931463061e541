"""
Reference data loading.

A seed file is JSON holding the departments, categories, locations and
workers the engine routes tickets through, plus the admin ids that
receive new-ticket notifications. See seed.example.json.
"""

import logging
from pathlib import Path
from typing import List, Union
from uuid import UUID

from pydantic import BaseModel, Field

from .models.ticket import Category, Department, Location, Worker

logger = logging.getLogger(__name__)


class ReferenceData(BaseModel):
    departments: List[Department] = Field(default_factory=list)
    categories: List[Category] = Field(default_factory=list)
    locations: List[Location] = Field(default_factory=list)
    workers: List[Worker] = Field(default_factory=list)
    admin_ids: List[UUID] = Field(default_factory=list)

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "ReferenceData":
        """Parse and validate a seed file. Raises pydantic ValidationError on bad data."""
        return cls.model_validate_json(Path(path).read_text(encoding="utf-8"))

    def load_into(self, store) -> None:
        for department in self.departments:
            store.add_department(department)
        for category in self.categories:
            store.add_category(category)
        for location in self.locations:
            store.add_location(location)
        for worker in self.workers:
            store.add_worker(worker)

        logger.info(
            "Loaded reference data: %d departments, %d categories, %d locations, %d workers",
            len(self.departments), len(self.categories), len(self.locations), len(self.workers)
        )
