import io
import json

import pytest

from issuer.config import config_from_mapping
from issuer.logging import StructuredLogger, configure_logging, get_logger


def test_structured_logger_json_format(capsys):
    """JSON mode emits one parseable line per event with extra fields."""
    logger = StructuredLogger(name='test_json', json_logging=True, level='INFO')
    logger.log_operation('test_operation', param1='value1', param2=42)

    captured = capsys.readouterr()
    log_lines = [line for line in captured.err.strip().split('\n') if line]

    assert len(log_lines) == 1
    entry = json.loads(log_lines[0])
    assert entry['level'] == 'INFO'
    assert entry['message'] == 'Operation: test_operation'
    assert entry['operation'] == 'test_operation'
    assert entry['param1'] == 'value1'
    assert entry['param2'] == 42
    assert 'timestamp' in entry


def test_structured_logger_text_format():
    stream = io.StringIO()
    logger = StructuredLogger(name='test_text', json_logging=False, level='INFO', stream=stream)
    logger.log_issue_action('created', 'Fix login', issue_number=12)
    output = stream.getvalue()
    assert "issue created 'Fix login' #12" in output
    assert output.lstrip()[0].isdigit()


def test_dry_run_marker_in_issue_action():
    stream = io.StringIO()
    logger = StructuredLogger(name='test_dry', level='INFO', stream=stream)
    logger.log_issue_action('preview', 'Title', dry_run=True)
    assert '[DRY]' in stream.getvalue()


def test_level_filters_lower_messages():
    stream = io.StringIO()
    logger = StructuredLogger(name='test_level', level='WARNING', stream=stream)
    logger.info('quiet')
    logger.warning('loud')
    assert 'quiet' not in stream.getvalue()
    assert 'loud' in stream.getvalue()


def test_json_mode_dedupes_identical_consecutive_events():
    stream = io.StringIO()
    logger = StructuredLogger(name='test_dedupe', json_logging=True, level='INFO', stream=stream)
    logger.log_operation('same', n=1)
    logger.log_operation('same', n=1)
    logger.log_operation('same', n=2)
    assert len(stream.getvalue().strip().split('\n')) == 2


def test_unserializable_extra_is_repr():
    stream = io.StringIO()
    logger = StructuredLogger(name='test_repr', json_logging=True, level='INFO', stream=stream)
    logger.log_operation('obj', thing=object())
    entry = json.loads(stream.getvalue())
    assert entry['thing'].startswith('<object object')


def test_log_error_includes_error_field():
    stream = io.StringIO()
    logger = StructuredLogger(name='test_err', json_logging=True, level='INFO', stream=stream)
    logger.log_error('post_failed', error='boom', run_id='run_x')
    entry = json.loads(stream.getvalue())
    assert entry['level'] == 'ERROR'
    assert entry['error'] == 'boom'
    assert entry['run_id'] == 'run_x'


def test_timed_operation_logs_failure_and_reraises():
    stream = io.StringIO()
    logger = StructuredLogger(name='test_timed', json_logging=True, level='INFO', stream=stream)
    with pytest.raises(RuntimeError):
        with logger.timed_operation('post', project='acme/widgets'):
            raise RuntimeError('kaput')
    events = [json.loads(line) for line in stream.getvalue().strip().split('\n')]
    assert events[0]['operation'] == 'post_start'
    assert events[-1]['message'] == 'operation post failed'


def test_configure_logging_replaces_global():
    stream = io.StringIO()
    configured = configure_logging(json_logging=True, level='DEBUG', stream=stream)
    assert get_logger() is configured
    get_logger().debug('hello', where='test')
    assert json.loads(stream.getvalue())['where'] == 'test'


def test_config_logging_section():
    cfg = config_from_mapping({'logging': {'json_enabled': True, 'level': 'DEBUG'}})
    assert cfg.logging_json_enabled is True
    assert cfg.logging_level == 'DEBUG'
    default = config_from_mapping({})
    assert default.logging_json_enabled is False
    assert default.logging_level == 'WARNING'
