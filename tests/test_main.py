import os
import unittest
from unittest import mock

from sqlscaler.common.context import PollContext
from sqlscaler.common.errors import ConnectionFailedError, MissingFieldError
from sqlscaler.config import load_config
from sqlscaler.main import build_scaler, lambda_handler, poll_scaler, resolve_auth_params, _poll_timeout
from sqlscaler.scalers.mysql import MysqlScaler

METADATA = {
    'host': 'h',
    'port': '3306',
    'user': 'root',
    'password': 'p',
    'database': 'd',
    'query': 'SELECT count(*) from users',
    'count': '10'
}


class TestBuildScaler(unittest.TestCase):
    """Tests for the scaler registry."""

    def test_builds_mysql_scaler(self):
        """Test that the mysql type builds a MysqlScaler, case-insensitively."""
        scaler = build_scaler('MySQL', {}, METADATA, {})

        self.assertIsInstance(scaler, MysqlScaler)
        self.assertEqual(scaler.metadata.database, 'd')

    def test_unsupported_type(self):
        """Test that unknown scaler types are rejected with the supported list."""
        with self.assertRaises(ValueError) as cm:
            build_scaler('oracle', {}, METADATA, {})

        self.assertIn('mysql', str(cm.exception))

    def test_invalid_metadata(self):
        """Test that invalid metadata fails scaler construction."""
        with self.assertRaises(MissingFieldError):
            build_scaler('mysql', {}, {'query': 'SELECT 1', 'count': '1'}, {})


class TestPollScaler(unittest.TestCase):
    """Tests for one host-style poll cycle."""

    @mock.patch('sqlscaler.scalers.mysql.get_record_count')
    def test_active_and_metrics_agree(self, mock_get_record_count):
        """Test that activity and metric value agree for one poll cycle."""
        mock_get_record_count.return_value = 5
        scaler = build_scaler('mysql', {}, METADATA, {})

        result = poll_scaler(scaler, PollContext.background())

        self.assertTrue(result['is_active'])
        self.assertEqual(result['metric_spec'], {
            'metric_name': 'RecordCount',
            'target_average_value': 10,
            'type': 'External'
        })
        self.assertEqual(len(result['metrics']), 1)
        self.assertEqual(result['metrics'][0]['value'], 5)
        self.assertEqual(result['metrics'][0]['metric_name'], 'RecordCount')
        self.assertIsInstance(result['metrics'][0]['timestamp'], str)

    @mock.patch('sqlscaler.scalers.mysql.get_record_count')
    def test_metric_name_override(self, mock_get_record_count):
        """Test that values are reported under an overridden metric name."""
        mock_get_record_count.return_value = 0
        scaler = build_scaler('mysql', {}, METADATA, {})

        result = poll_scaler(scaler, PollContext.background(), 'pending-jobs')

        self.assertFalse(result['is_active'])
        self.assertEqual(result['metrics'][0]['metric_name'], 'pending-jobs')
        self.assertEqual(result['metrics'][0]['value'], 0)


class TestResolveAuthParams(unittest.TestCase):
    """Tests for merging secret and explicit auth params."""

    @mock.patch.dict(os.environ, {}, clear=True)
    @mock.patch('sqlscaler.main.AWSWrapper')
    def test_without_secret(self, mock_wrapper):
        """Test that explicit auth params are used when no secret is configured."""
        config = load_config({'config': {'auth_params': {'password': 'x'}}})

        self.assertEqual(resolve_auth_params(config), {'password': 'x'})
        mock_wrapper.assert_not_called()

    @mock.patch.dict(os.environ, {}, clear=True)
    @mock.patch('sqlscaler.main.AWSWrapper')
    def test_explicit_params_override_secret(self, mock_wrapper):
        """Test that explicit auth params override keys from the secret."""
        mock_wrapper.return_value.get_secret_dict.return_value = {'password': 'from-secret', 'other': '1'}
        config = load_config({'config': {'auth_secret_id': 'prod/mysql', 'auth_params': {'password': 'x'}}})

        auth_params = resolve_auth_params(config)

        self.assertEqual(auth_params, {'password': 'x', 'other': '1'})
        mock_wrapper.return_value.get_secret_dict.assert_called_once_with('prod/mysql')


class TestPollTimeout(unittest.TestCase):
    """Tests for bounding the poll deadline by the Lambda's remaining time."""

    @mock.patch.dict(os.environ, {'POLL_TIMEOUT': '30'}, clear=True)
    def test_configured_timeout_without_lambda_context(self):
        """Test that the configured timeout is used outside Lambda."""
        self.assertEqual(_poll_timeout(load_config(), None), 30.0)

    @mock.patch.dict(os.environ, {'POLL_TIMEOUT': '30'}, clear=True)
    def test_lambda_remaining_time_caps_timeout(self):
        """Test that the Lambda's remaining time caps the poll timeout."""
        context = mock.MagicMock()
        context.get_remaining_time_in_millis.return_value = 6000

        self.assertEqual(_poll_timeout(load_config(), context), 5.0)

    @mock.patch.dict(os.environ, {'POLL_TIMEOUT': '30'}, clear=True)
    def test_never_negative(self):
        """Test that the poll timeout never goes below zero."""
        context = mock.MagicMock()
        context.get_remaining_time_in_millis.return_value = 200

        self.assertEqual(_poll_timeout(load_config(), context), 0.0)


@mock.patch.dict(os.environ, {}, clear=True)
class TestLambdaHandler(unittest.TestCase):
    """Tests for the Lambda entry point."""

    @mock.patch('sqlscaler.scalers.mysql.get_record_count')
    def test_successful_poll(self, mock_get_record_count):
        """Test a successful poll through the Lambda handler."""
        mock_get_record_count.return_value = 5

        result = lambda_handler({'config': {'metadata': METADATA}}, None)

        self.assertEqual(result['scaler_type'], 'mysql')
        self.assertTrue(result['is_active'])
        self.assertEqual(result['metrics'][0]['value'], 5)
        self.assertEqual(result['metric_spec']['target_average_value'], 10)

    @mock.patch('sqlscaler.scalers.mysql.pymysql.connect')
    def test_missing_database(self, mock_connect):
        """Test that missing database returns 400 without connecting."""
        metadata = {k: v for k, v in METADATA.items() if k != 'database'}

        result = lambda_handler({'config': {'metadata': metadata}}, None)

        self.assertEqual(result['statusCode'], 400)
        self.assertEqual(result['field'], 'database')
        mock_connect.assert_not_called()

    def test_unsupported_scaler_type(self):
        """Test that an unsupported scaler type returns 400."""
        result = lambda_handler({'config': {'scaler_type': 'oracle', 'metadata': METADATA}}, None)

        self.assertEqual(result['statusCode'], 400)

    def test_invalid_poll_timeout(self):
        """Test that a non-numeric poll timeout is rejected."""
        result = lambda_handler({'config': {'metadata': METADATA, 'poll_timeout': 'soon'}}, None)

        self.assertEqual(result['statusCode'], 400)

    @mock.patch('sqlscaler.scalers.mysql.get_record_count')
    def test_poll_failure(self, mock_get_record_count):
        """Test that a failed poll returns 500 with the error kind."""
        mock_get_record_count.side_effect = ConnectionFailedError(OSError('refused'))

        result = lambda_handler({'config': {'metadata': METADATA}}, None)

        self.assertEqual(result['statusCode'], 500)
        self.assertEqual(result['kind'], 'ConnectionFailed')

    @mock.patch('sqlscaler.scalers.mysql.pymysql.connect')
    def test_exhausted_lambda_time_never_connects(self, mock_connect):
        """Test that no connection is attempted when Lambda time is used up."""
        context = mock.MagicMock()
        context.get_remaining_time_in_millis.return_value = 100

        result = lambda_handler({'config': {'metadata': METADATA}}, context)

        self.assertEqual(result['statusCode'], 500)
        self.assertEqual(result['kind'], 'Cancelled')
        mock_connect.assert_not_called()

    @mock.patch('sqlscaler.main.AWSWrapper')
    def test_secret_failure(self, mock_wrapper):
        """Test that an unreadable secret returns 500."""
        mock_wrapper.return_value.get_secret_dict.side_effect = ValueError('Secret prod/mysql is not valid JSON')

        result = lambda_handler({'config': {'metadata': METADATA, 'auth_secret_id': 'prod/mysql'}}, None)

        self.assertEqual(result['statusCode'], 500)


if __name__ == '__main__':
    unittest.main()
