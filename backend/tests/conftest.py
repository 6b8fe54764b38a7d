"""
ClawFix - Test Configuration and Fixtures
"""
import copy
import os
from typing import Any, AsyncGenerator, Dict

import pytest
from httpx import AsyncClient, ASGITransport
from faker import Faker

# Set testing environment (before clawfix reads its settings)
os.environ['ENVIRONMENT'] = 'test'
os.environ['DATABASE_URL'] = ''
os.environ['ANTHROPIC_API_KEY'] = ''
os.environ['AI_ANALYSIS_ENABLED'] = 'false'
os.environ['RATE_LIMIT_ENABLED'] = 'false'
os.environ['LOG_FILE'] = ''

from clawfix.main import app
from clawfix.api.v1.dependencies import get_diagnosis_service
from clawfix.services.diagnosis import DiagnosisService
from clawfix.services.diagnosis.augmentor import NullAugmentor
from clawfix.services.diagnosis.store import ResultStore
from clawfix.services.persistence import DiagnosisRepository

fake = Faker()


def build_healthy_payload() -> Dict[str, Any]:
    """A payload that matches no catalog rule"""
    return {
        'system': {
            'os': 'Darwin',
            'arch': 'arm64',
            'nodeVersion': 'v22.3.0',
            'hostname': fake.hostname(),
        },
        'openclaw': {
            'version': '2026.2.9',
            'gatewayStatus': 'running',
            'gatewayPid': fake.random_int(min=1000, max=60000),
        },
        'config': {
            'agents': {
                'defaults': {
                    'memorySearch': {'query': {'hybrid': {'enabled': True}}},
                    'contextPruning': {'mode': 'cache-ttl', 'ttl': '6h'},
                    'compaction': {'memoryFlush': {'enabled': True}},
                    'heartbeat': {'every': '60m'},
                }
            },
            'plugins': {'entries': {}},
        },
        'logs': {'errors': '', 'stderr': ''},
        'workspace': {'hasSoul': True, 'memoryFiles': 4},
    }


@pytest.fixture
def healthy_payload() -> Dict[str, Any]:
    return build_healthy_payload()


@pytest.fixture
def minimal_payload() -> Dict[str, Any]:
    """Only the required section"""
    return {'system': {'os': 'Linux', 'arch': 'x64'}}


@pytest.fixture
def mem0_payload(healthy_payload) -> Dict[str, Any]:
    """Healthy except for the Mem0 graph flag"""
    payload = copy.deepcopy(healthy_payload)
    payload['config']['plugins']['entries']['openclaw-mem0'] = {
        'enabled': True,
        'config': {'enableGraph': True, 'apiKey': '[REDACTED]'},
    }
    return payload


@pytest.fixture
def port_conflict_payload(healthy_payload) -> Dict[str, Any]:
    payload = copy.deepcopy(healthy_payload)
    payload['logs']['errors'] = (
        'Error: listen EADDRINUSE: address already in use :::18789\n'
        '    at Server.setupListenHandle [as _listen2] (node:net:1817:16)'
    )
    return payload


@pytest.fixture
def result_store() -> ResultStore:
    return ResultStore(capacity=10)


@pytest.fixture
def diagnosis_service(result_store) -> DiagnosisService:
    """Pattern-only service without persistence"""
    return DiagnosisService(result_store, NullAugmentor(reason='disabled'), ai_timeout=1.0)


@pytest.fixture
async def repository(tmp_path) -> AsyncGenerator[DiagnosisRepository, None]:
    """File-backed SQLite repository, fresh per test"""
    repo = DiagnosisRepository.from_url(f"sqlite+aiosqlite:///{tmp_path / 'clawfix-test.db'}")
    await repo.init_schema()
    yield repo
    await repo.close()


@pytest.fixture
async def persistent_service(result_store, repository) -> DiagnosisService:
    return DiagnosisService(result_store, NullAugmentor(reason='disabled'), repository=repository, ai_timeout=1.0)


@pytest.fixture
async def client(diagnosis_service: DiagnosisService) -> AsyncGenerator[AsyncClient, None]:
    """Test client bound to a fresh diagnosis service"""
    app.dependency_overrides[get_diagnosis_service] = lambda: diagnosis_service

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url='http://test') as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
async def persistent_client(persistent_service: DiagnosisService) -> AsyncGenerator[AsyncClient, None]:
    """Test client whose service records to SQLite"""
    app.dependency_overrides[get_diagnosis_service] = lambda: persistent_service

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url='http://test') as ac:
        yield ac

    app.dependency_overrides.clear()
