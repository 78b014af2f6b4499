import datetime as dt
import json

import main
from bandsched.db import init_db, make_engine, make_session_factory
from bandsched.db.store import SqlBookingStore
from bandsched.rehearsals import Rehearsal


def test_suggest_command_prints_ranked_slots(tmp_path, capsys):
    members_file = tmp_path / "members.json"
    members_file.write_text(json.dumps([
        {"userId": "u1", "recurringSlots": [{"day": 1, "startTime": "18:00", "endTime": "21:00"}]},
        {"userId": "u2", "recurringSlots": [{"day": 1, "startTime": "19:00", "endTime": "22:00"}]},
    ]))
    code = main.main([
        "suggest", "--members", str(members_file),
        "--start", "2024-01-01T00:00", "--end", "2024-01-08T00:00", "--duration", "60",
    ])
    assert code == 0
    slots = json.loads(capsys.readouterr().out)
    assert slots == [{
        "rank": 1,
        "slackMinutes": 120,
        "start": "2024-01-01T19:00:00",
        "end": "2024-01-01T20:00:00",
    }]


def test_occurrences_command_reads_the_database(tmp_path, capsys):
    url = f"sqlite:///{tmp_path / 'bandsched.db'}"
    engine = make_engine(url)
    init_db(engine)
    store = SqlBookingStore(make_session_factory(engine))
    store.book(Rehearsal(
        group_id="g1", title="Tuesday practice",
        start=dt.datetime(2024, 1, 2, 19), end=dt.datetime(2024, 1, 2, 21),
        recurrence={"frequency": "weekly", "dayOfWeek": 2, "endDate": "2024-01-17"},
    ))
    engine.dispose()

    code = main.main([
        "--database-url", url, "occurrences",
        "--start", "2024-01-01T00:00:00+00:00", "--end", "2024-02-01T00:00:00+00:00",
    ])
    assert code == 0
    items = json.loads(capsys.readouterr().out)
    assert [item["start"] for item in items] == [
        "2024-01-02T19:00:00+00:00",
        "2024-01-09T19:00:00+00:00",
        "2024-01-16T19:00:00+00:00",
    ]
    assert {item["title"] for item in items} == {"Tuesday practice"}


def test_invalid_input_returns_error_code(tmp_path):
    members_file = tmp_path / "members.json"
    members_file.write_text(json.dumps([{"recurringSlots": []}]))
    code = main.main([
        "suggest", "--members", str(members_file),
        "--start", "2024-01-08T00:00", "--end", "2024-01-01T00:00",
    ])
    assert code == 2


def test_init_db_script_creates_tables(tmp_path):
    from sqlalchemy import create_engine, inspect

    from scripts.init_db import main as init_db_script

    url = f"sqlite:///{tmp_path / 'fresh.db'}"
    init_db_script(["--database-url", url])
    tables = set(inspect(create_engine(url)).get_table_names())
    assert {"venues", "rehearsals", "rehearsal_attendees"} <= tables


def test_init_db_command(tmp_path):
    target = tmp_path / "cli.db"
    assert main.main(["--database-url", f"sqlite:///{target}", "init-db"]) == 0
    assert target.exists()
