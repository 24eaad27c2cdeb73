"""
End-to-end runs of the parallel-stacks CLI.
"""

import json

import pytest

import parallel_stacks

SNAPSHOT = {
    "threads": [
        {"managed_id": i, "os_id": 100 + i, "lock_count": 4294967295,
         "frames": [
             {"raw": "[HelperMethodFrame_1OBJ] (System.Threading.Monitor.ReliableEnter)", "signature": None},
             "System.Threading.Monitor.ReliableEnter(System.Object, Boolean ByRef)",
             "DumpSources.ParallelForBlockedOnLock+<>c__DisplayClass1_0.<Run>b__0(Int32)",
             "System.Threading.ThreadPoolWorkQueue.Dispatch()",
         ]}
        for i in range(3, 15)
    ] + [
        {"managed_id": 1, "os_id": 7,
         "frames": ["Program+<Main>d__0.MoveNext()", "Program.<Main>(System.String[])"],
         "exception": {"type": "System.AggregateException", "message": "One or more errors occurred."}},
        {"managed_id": 2, "alive": False, "frames": ["Finalizer.Run()"]},
    ],
    "thread_objects": [
        {"_name": "Main thread", "_managedThreadId": 1},
        {"_name": None, "_managedThreadId": 3},
    ],
}


@pytest.fixture
def snapshot_path(tmp_path):
    path = tmp_path / "snapshot.json"
    path.write_text(json.dumps(SNAPSHOT), encoding="utf-8")
    return path


def test_render(snapshot_path, capsys):
    parallel_stacks.main([str(snapshot_path), "--no-color"])
    out = capsys.readouterr().out

    assert "Thread count: 13, Unique stack traces: 2" in out
    assert "12 Threads. (Ids: 3, 4, 5, 6, 7, 8, 9, 10, 11, 12...)" in out
    assert "Thread #1 (OsId: #7) (Main thread)" in out
    assert "System.AggregateException: One or more errors occurred." in out
    assert "DumpSources.ParallelForBlockedOnLock.Run.AnonymousMethod__0(int)" in out
    assert "Program.Main.StateMachine__0.MoveNext()" in out
    assert out.index("12 Threads.") < out.index("Thread #1 ")


def test_top_and_json_export(snapshot_path, tmp_path, capsys):
    out_path = tmp_path / "out" / "groups.json"
    parallel_stacks.main([str(snapshot_path), "--no-color", "--top", "1", "--jobs", "3",
                          "--json", str(out_path)])
    out = capsys.readouterr().out
    assert "Thread #1 " not in out

    data = json.loads(out_path.read_text(encoding="utf-8"))
    assert data["thread_count"] == 13
    assert data["unique_stacks"] == 2
    first, second = data["groups"]
    assert first["kind"] == "grouped"
    assert first["managed_ids"] == list(range(3, 15))
    assert first["frames"][0]["signature"] == "System.Threading.Monitor.ReliableEnter(object, ref bool)"
    assert "lock_count" not in first
    assert second["exception"]["type"] == "System.AggregateException"


def test_invalid_json(tmp_path, capsys):
    path = tmp_path / "broken.json"
    path.write_text("{not json", encoding="utf-8")
    with pytest.raises(SystemExit) as exc:
        parallel_stacks.main([str(path)])
    assert exc.value.code == 2
    assert "[error]" in capsys.readouterr().err


def test_missing_file(tmp_path, capsys):
    with pytest.raises(SystemExit) as exc:
        parallel_stacks.main([str(tmp_path / "nope.json")])
    assert exc.value.code == 2


def test_no_managed_stacks(tmp_path, capsys):
    path = tmp_path / "empty.json"
    path.write_text(json.dumps({"threads": [{"managed_id": 1, "frames": []}]}), encoding="utf-8")
    with pytest.raises(SystemExit) as exc:
        parallel_stacks.main([str(path)])
    assert exc.value.code == 1


@pytest.mark.parametrize("document", [
    {"threads": ["oops"], "thread_objects": [{"_name": "Main", "_managedThreadId": 1}]},
    {"threads": [{"managed_id": 1, "frames": ["A.B()"]}],
     "thread_objects": [{"_name": "Main", "_managedThreadId": "abc"}]},
    {"threads": [{"managed_id": 1, "frames": ["A.B()"]}], "thread_objects": ["notadict"]},
    {"threads": [{"managed_id": 1, "frames": ["A.B()"]}], "thread_objects": [{"_name": "Main"}]},
])
def test_bad_thread_objects(tmp_path, capsys, document):
    path = tmp_path / "bad_objects.json"
    path.write_text(json.dumps(document), encoding="utf-8")
    with pytest.raises(SystemExit) as exc:
        parallel_stacks.main([str(path)])
    assert exc.value.code == 2
    assert "[error]" in capsys.readouterr().err


def test_bad_thread_record(tmp_path, capsys):
    path = tmp_path / "bad.json"
    path.write_text(json.dumps({"threads": [{"frames": ["A.B()"]}]}), encoding="utf-8")
    with pytest.raises(SystemExit) as exc:
        parallel_stacks.main([str(path)])
    assert exc.value.code == 2
