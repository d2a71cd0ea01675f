"""Tests for generic helpers."""

import logging

from data.utils import supress_stdout
from utils import run_func_dict


def add(a, b):
    return a + b


def divide(a, b):
    return a / b


class TestRunFuncDict:
    def test_success(self, caplog):
        caplog.set_level(logging.INFO)
        assert run_func_dict({"a": 1, "b": 2}, add) == 3
        assert "Successfully executed add" in caplog.text

    def test_failure_is_logged(self, caplog):
        assert run_func_dict({"a": 1, "b": 0}, divide) is None
        assert "Error occurred while executing divide" in caplog.text
        assert "ZeroDivisionError" in caplog.text


def test_supress_stdout(capsys):
    @supress_stdout
    def noisy():
        print("R console output")
        return 42

    assert noisy() == 42
    assert capsys.readouterr().out == ""
