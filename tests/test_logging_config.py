import datetime
import logging

from nfa_proxy.logging_config import DailyFileHandler, LocalTimezoneFormatter


def test_daily_file_handler_writes_dated_file(tmp_path):
    handler = DailyFileHandler(log_dir=tmp_path)
    handler.setFormatter(logging.Formatter("%(levelname)s %(message)s"))
    record = logging.LogRecord("nfaproxy", logging.INFO, __file__, 1, "hello %s", ("proxy",), None)

    handler.emit(record)
    handler.close()

    path = tmp_path / f"nfa-proxy-{datetime.date.today().isoformat()}.log"
    assert path.read_text(encoding="utf-8") == "INFO hello proxy\n"


def test_daily_file_handler_prunes_old_files(tmp_path):
    for day in ("2020-01-01", "2020-01-02", "2020-01-03"):
        (tmp_path / f"nfa-proxy-{day}.log").write_text("old\n", encoding="utf-8")

    handler = DailyFileHandler(log_dir=tmp_path, backup_count=2)
    handler.close()

    remaining = sorted(p.name for p in tmp_path.iterdir())
    assert remaining == [
        "nfa-proxy-2020-01-03.log",
        f"nfa-proxy-{datetime.date.today().isoformat()}.log",
    ]


def test_formatter_uses_configured_timezone():
    formatter = LocalTimezoneFormatter("%(asctime)s", timezone_name="UTC")
    record = logging.LogRecord("nfaproxy", logging.INFO, __file__, 1, "msg", None, None)
    record.created = 0.0

    assert formatter.formatTime(record) == "1970-01-01T00:00:00.000+00:00"


def test_formatter_falls_back_on_unknown_timezone():
    formatter = LocalTimezoneFormatter("%(asctime)s", timezone_name="Not/AZone")
    record = logging.LogRecord("nfaproxy", logging.INFO, __file__, 1, "msg", None, None)

    assert formatter.format(record)
