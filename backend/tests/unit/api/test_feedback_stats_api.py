"""
Unit Tests for the Feedback and Stats Endpoints
"""
import pytest
from httpx import AsyncClient
from faker import Faker

fake = Faker()


class TestFeedback:
    """Test POST /api/feedback"""

    @pytest.mark.asyncio
    async def test_feedback_without_persistence(self, client: AsyncClient, minimal_payload):
        """Test feedback for a known fix is accepted but not recorded"""
        created = (await client.post('/api/diagnose', json=minimal_payload)).json()

        response = await client.post('/api/feedback', json={
            'fixId': created['fixId'],
            'success': True,
        })

        assert response.status_code == 202
        assert response.json() == {'recorded': False}

    @pytest.mark.asyncio
    async def test_feedback_unknown_fix(self, client: AsyncClient):
        """Test feedback for an unknown fix is rejected"""
        response = await client.post('/api/feedback', json={'fixId': 'unknown', 'success': False})

        assert response.status_code == 404
        assert response.json() == {'error': 'Fix not found or expired'}

    @pytest.mark.asyncio
    async def test_feedback_validation(self, client: AsyncClient):
        """Test malformed feedback is a validation error"""
        response = await client.post('/api/feedback', json={'fixId': '', 'issuesRemaining': -1})

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_feedback_recorded(self, persistent_client: AsyncClient, mem0_payload):
        """Test feedback reaches the database when persistence is on"""
        created = (await persistent_client.post('/api/diagnose', json=mem0_payload)).json()

        response = await persistent_client.post('/api/feedback', json={
            'fixId': created['fixId'],
            'success': True,
            'issuesRemaining': 0,
            'comment': fake.sentence(),
        })

        assert response.status_code == 202
        assert response.json() == {'recorded': True}


class TestStats:
    """Test GET /api/stats"""

    @pytest.mark.asyncio
    async def test_stats_without_persistence(self, client: AsyncClient):
        """Test stats are unavailable without a database"""
        response = await client.get('/api/stats')

        assert response.status_code == 503
        assert response.json() == {
            'error': 'Statistics unavailable',
            'hint': 'Set DATABASE_URL to enable persistence',
        }

    @pytest.mark.asyncio
    async def test_stats_with_persistence(self, persistent_client: AsyncClient, mem0_payload, minimal_payload):
        """Test stats aggregate stored diagnoses and feedback"""
        first = (await persistent_client.post('/api/diagnose', json=mem0_payload)).json()
        await persistent_client.post('/api/diagnose', json=minimal_payload)
        await persistent_client.post('/api/feedback', json={'fixId': first['fixId'], 'success': True})

        response = await persistent_client.get('/api/stats')

        assert response.status_code == 200
        data = response.json()
        assert data['totalDiagnoses'] == 2
        assert data['last24h'] == 2
        assert data['outcomes'] == {'success': 1, 'unknown': 1}
        assert data['aiDiscoveries'] == 0
        assert data['versions'] == [{'version': '2026.2.9', 'count': 1}]

        mem0 = next(p for p in data['topIssues'] if p['id'] == 'mem0-graph-free')
        assert mem0['timesDetected'] == 1
        assert mem0['timesFixed'] == 1
        assert mem0['successRate'] == 1.0
        assert data['store']['size'] == 2
