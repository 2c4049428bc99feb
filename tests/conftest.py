"""Shared fixtures for resource manager tests."""

import pytest
from unittest.mock import Mock

from cloudclass.classes.store import ClassNotFoundError, ClassStore
from cloudclass.core.aws_client import AWSClientManager
from cloudclass.core.config import Configuration
from cloudclass.core.errors import InvalidRegionError
from cloudclass.core.regions import RegionCatalog
from cloudclass.core.safety import SafetyManager


class FakeAWS:
    """Mock SDK clients keyed by (service, region) plus manager collaborators."""

    def __init__(self, regions=("us-east-1",)):
        self.clients = {}
        self.paginators = {}
        self.classes = {}

        self.aws_client = Mock(spec=AWSClientManager)
        self.aws_client.get_client.side_effect = self.client

        self.config = Mock(spec=Configuration)
        self.config.get_max_workers.return_value = 2
        self.config.get_home_region.return_value = regions[0]

        self.regions = Mock(spec=RegionCatalog)
        self.regions.list_regions.return_value = list(regions)
        self.regions.valid_zone.return_value = True
        self.regions.zones_by_region.side_effect = RegionCatalog.zones_by_region
        self.regions.require_region.side_effect = self._require_region

        self.safety = SafetyManager(enable_confirmations=False)

        self.store = Mock(spec=ClassStore)
        self.store.load.side_effect = self._load

    def _require_region(self, region):
        if region not in self.regions.list_regions.return_value:
            raise InvalidRegionError(f"Region [{region}] is Invalid!")

    def _load(self, type_key, name):
        try:
            return self.classes[(type_key, name)]
        except KeyError:
            raise ClassNotFoundError(
                f"Unable to find the [{name}] class in [{type_key}]!"
            )

    def client(self, service, region):
        if (service, region) not in self.clients:
            client = Mock(name=f"{service}.{region}")
            pages = self.paginators.setdefault((service, region), {})

            def get_paginator(operation, pages=pages):
                paginator = Mock()
                paginator.paginate.return_value = pages.get(operation, [])
                return paginator

            client.get_paginator.side_effect = get_paginator
            self.clients[(service, region)] = client
        return self.clients[(service, region)]

    def pages(self, service, region, operation, *pages):
        """Serve pages for one paginated operation."""
        self.client(service, region)
        self.paginators[(service, region)][operation] = list(pages)

    def add_class(self, type_key, name, cls):
        self.classes[(type_key, name)] = cls
        return cls

    def manager(self, manager_type):
        return manager_type(
            self.aws_client, self.config, self.regions, self.safety, self.store
        )


@pytest.fixture
def aws():
    """Single-region fake AWS."""
    return FakeAWS()


@pytest.fixture
def aws_two_regions():
    """Two-region fake AWS."""
    return FakeAWS(regions=("us-east-1", "us-west-2"))
