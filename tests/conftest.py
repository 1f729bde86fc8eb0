import pytest

from searchrepo.domain.index.service.alias import AliasResolver
from searchrepo.domain.query.builder.chain import QueryBuilderChain
from searchrepo.domain.repository.read_repository import ReadOnlyRepository
from searchrepo.infrastructure.cache.memory import InMemoryCacheClient
from searchrepo.infrastructure.cache.scoped import ScopedCacheClient
from searchrepo.infrastructure.expression.lucene import LuceneExpressionParser
from tests.support.documents import EMPLOYEE_CAPABILITIES, EMPLOYEES
from tests.support.fakes import FakeSearchStore


@pytest.fixture
def store() -> FakeSearchStore:
    return FakeSearchStore()


@pytest.fixture
def cache() -> InMemoryCacheClient:
    return InMemoryCacheClient(max_items=10000)


@pytest.fixture
def builders() -> QueryBuilderChain:
    return QueryBuilderChain.default(LuceneExpressionParser())


@pytest.fixture
def employee_repository(store, cache, builders) -> ReadOnlyRepository:
    """Employee repository over an index bound to its alias."""
    store.indices[EMPLOYEES.versioned_name] = {}
    store.aliases[EMPLOYEES.alias_name] = {EMPLOYEES.versioned_name}
    return ReadOnlyRepository(
        index=EMPLOYEES,
        capabilities=EMPLOYEE_CAPABILITIES,
        store=store,
        aliases=AliasResolver(store=store),
        cache=ScopedCacheClient(cache, EMPLOYEE_CAPABILITIES.name),
        builders=builders,
    )
