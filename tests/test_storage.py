from storage import VariableStorage


def test_missing_variable_reads_as_none():
    assert VariableStorage("never_written").get() is None


def test_marker_is_overwritten():
    storage = VariableStorage("shovel_test")
    storage.set({"lastMessageSent": "2026-01-19"})
    storage.set({"lastMessageSent": "2026-01-20"})
    assert storage.get() == {"lastMessageSent": "2026-01-20"}
