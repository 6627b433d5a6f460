#!/usr/bin/env python

import logging
import tempfile
import unittest
from datetime import datetime
from pathlib import Path

from memo_tools.config import config
from memo_tools.logging import CACHE_LEVEL, DatetimeFormatter, init_logging, stdout_level, to_log_level
from memo_tools.memoize import memoize


class LogLevelTest(unittest.TestCase):
    def test_to_log_level(self):
        cases = [(10, 10), ('10', 10), (' 25 ', 25), ('debug', logging.DEBUG), ('INFO', logging.INFO), ('memo', 9)]
        for value, expected in cases:
            with self.subTest(value=value):
                self.assertEqual(expected, to_log_level(value))

    def test_invalid_log_level(self):
        with self.assertRaises(ValueError):
            to_log_level('not_a_level')
        with self.assertRaises(TypeError):
            to_log_level(True)

    def test_cache_level_name(self):
        self.assertEqual('MEMO', logging.getLevelName(CACHE_LEVEL))

    def test_memoize_accepts_level_names(self):
        self.assertEqual(logging.DEBUG, memoize(lambda a: a, log_level='debug').log_level)

    def test_stdout_level_follows_config(self):
        self.assertEqual(logging.INFO, stdout_level(0))
        self.assertEqual(logging.DEBUG, stdout_level(1))
        self.assertEqual(CACHE_LEVEL, stdout_level(2))
        config.log_level = 5
        try:
            self.assertEqual(5, stdout_level(2))
        finally:
            del config.log_level


class LoggingInitTest(unittest.TestCase):
    def _cleanup_handlers(self, *names):
        for name in names:
            logger = logging.getLogger(name)
            while logger.handlers:
                logger.handlers[0].close()
                del logger.handlers[0]
            logger.setLevel(logging.NOTSET)

    def test_cache_activity_written_to_file(self):
        with tempfile.TemporaryDirectory() as tmp_dir:
            path = Path(tmp_dir, 'nested', 'test.log')
            try:
                log_path = init_logging(2, log_path=path, names='memo_tools.memoize', file_lvl=CACHE_LEVEL)
                self.assertEqual(path, log_path)
                func = memoize(lambda a: a * 2)
                func(3)
                func(3)
                for handler in logging.getLogger('memo_tools.memoize').handlers:
                    handler.flush()
                content = path.read_text('utf-8')
            finally:
                self._cleanup_handlers('memo_tools.memoize')

        self.assertIn('MEMO', content)
        self.assertIn('Storing new value', content)
        self.assertIn('Retrieving memoized value', content)

    def test_no_log_path(self):
        try:
            self.assertIsNone(init_logging(names='test'))
            handlers = {h.name: h for h in logging.getLogger('test').handlers}
            self.assertEqual({'stdout', 'stderr'}, set(handlers))
            self.assertEqual(logging.INFO, handlers['stdout'].level)
            self.assertEqual(logging.WARNING, handlers['stderr'].level)
        finally:
            logging.getLogger('test').handlers = []
            logging.getLogger('test').setLevel(logging.NOTSET)

    def test_stdout_excludes_warnings(self):
        try:
            init_logging(names='test')
            stdout = next(h for h in logging.getLogger('test').handlers if h.name == 'stdout')
            warning = logging.LogRecord('test', logging.WARNING, __file__, 1, 'msg', None, None)
            info = logging.LogRecord('test', logging.INFO, __file__, 1, 'msg', None, None)
            self.assertFalse(stdout.filter(warning))
            self.assertTrue(stdout.filter(info))
        finally:
            logging.getLogger('test').handlers = []
            logging.getLogger('test').setLevel(logging.NOTSET)


class DatetimeFormatterTest(unittest.TestCase):
    def test_micros(self):
        record = logging.LogRecord('test', logging.INFO, __file__, 1, 'msg', None, None)
        record.created = datetime(2021, 2, 3, 4, 5, 6, 789012).timestamp()
        formatted = DatetimeFormatter('%(asctime)s', '%H:%M:%S.%f').formatTime(record, '%H:%M:%S.%f')
        self.assertEqual('04:05:06.789012', formatted)

    def test_default_format(self):
        record = logging.LogRecord('test', logging.INFO, __file__, 1, 'msg', None, None)
        formatted = DatetimeFormatter('%(asctime)s').formatTime(record)
        self.assertRegex(formatted, r'^\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2},\d{3}$')


if __name__ == '__main__':
    try:
        unittest.main(warnings='ignore', verbosity=2, exit=False)
    except KeyboardInterrupt:
        print()
