"""Shared fixtures for calendar sync tests."""
from datetime import datetime, timezone

import boto3
import pytest
from moto import mock_aws

from ics_helpers import InMemoryEventStore


@pytest.fixture(autouse=True)
def aws_credentials(monkeypatch):
    """Keep boto3 away from real AWS credentials."""
    monkeypatch.setenv('AWS_ACCESS_KEY_ID', 'testing')
    monkeypatch.setenv('AWS_SECRET_ACCESS_KEY', 'testing')
    monkeypatch.setenv('AWS_SECURITY_TOKEN', 'testing')
    monkeypatch.setenv('AWS_SESSION_TOKEN', 'testing')
    monkeypatch.setenv('AWS_DEFAULT_REGION', 'us-east-1')


@pytest.fixture
def dynamodb_tables():
    """Create mock events, integrations and analytics tables."""
    with mock_aws():
        dynamodb = boto3.resource('dynamodb', region_name='us-east-1')
        throughput = {'ReadCapacityUnits': 5, 'WriteCapacityUnits': 5}

        events = dynamodb.create_table(
            TableName='test-calendar-events',
            KeySchema=[
                {'AttributeName': 'feed_integration_id', 'KeyType': 'HASH'},
                {'AttributeName': 'external_event_id', 'KeyType': 'RANGE'}
            ],
            AttributeDefinitions=[
                {'AttributeName': 'feed_integration_id', 'AttributeType': 'S'},
                {'AttributeName': 'external_event_id', 'AttributeType': 'S'},
                {'AttributeName': 'user_id', 'AttributeType': 'S'},
                {'AttributeName': 'start_time', 'AttributeType': 'S'}
            ],
            GlobalSecondaryIndexes=[
                {
                    'IndexName': 'user-index',
                    'KeySchema': [
                        {'AttributeName': 'user_id', 'KeyType': 'HASH'},
                        {'AttributeName': 'start_time', 'KeyType': 'RANGE'}
                    ],
                    'Projection': {'ProjectionType': 'ALL'},
                    'ProvisionedThroughput': throughput
                }
            ],
            BillingMode='PROVISIONED',
            ProvisionedThroughput=throughput
        )

        integrations = dynamodb.create_table(
            TableName='test-calendar-integrations',
            KeySchema=[{'AttributeName': 'id', 'KeyType': 'HASH'}],
            AttributeDefinitions=[
                {'AttributeName': 'id', 'AttributeType': 'S'},
                {'AttributeName': 'user_id', 'AttributeType': 'S'}
            ],
            GlobalSecondaryIndexes=[
                {
                    'IndexName': 'user-index',
                    'KeySchema': [{'AttributeName': 'user_id', 'KeyType': 'HASH'}],
                    'Projection': {'ProjectionType': 'ALL'},
                    'ProvisionedThroughput': throughput
                }
            ],
            BillingMode='PROVISIONED',
            ProvisionedThroughput=throughput
        )

        analytics = dynamodb.create_table(
            TableName='test-daily-analytics',
            KeySchema=[
                {'AttributeName': 'user_id', 'KeyType': 'HASH'},
                {'AttributeName': 'day', 'KeyType': 'RANGE'}
            ],
            AttributeDefinitions=[
                {'AttributeName': 'user_id', 'AttributeType': 'S'},
                {'AttributeName': 'day', 'AttributeType': 'S'}
            ],
            BillingMode='PROVISIONED',
            ProvisionedThroughput=throughput
        )

        yield {'events': events, 'integrations': integrations, 'analytics': analytics}


@pytest.fixture
def in_memory_store():
    return InMemoryEventStore()


@pytest.fixture
def fixed_now():
    """Clock pinned to mid-January 2024."""
    return lambda: datetime(2024, 1, 15, 12, 0, tzinfo=timezone.utc)
