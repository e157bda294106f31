import pytest

from dstc.registry import (
    DEFAULT_CAPACITY,
    CallbackTable,
    FunctionTable,
    RemoteNodeTable,
    SymbolTableFull,
)


def handler_a(*args):
    return "a"


def handler_b(*args):
    return "b"


def handler_c(*args):
    return "c"


# --- CallbackTable -------------------------------------------------------


def test_activate_returns_reference():
    table = CallbackTable()
    assert table.activate(42, handler_a) == 42
    assert 42 in table


def test_activate_without_dispatch_returns_zero():
    table = CallbackTable()
    assert table.activate(42, None) == 0
    assert len(table) == 0


def test_find_by_ref_is_one_shot():
    table = CallbackTable()
    table.activate(7, handler_a)
    assert table.find_by_ref(7) is handler_a
    assert table.find_by_ref(7) is None
    assert len(table) == 0


def test_find_by_ref_unknown():
    table = CallbackTable()
    table.activate(7, handler_a)
    assert table.find_by_ref(8) is None
    assert len(table) == 1


def test_cancel_removes_by_dispatch():
    table = CallbackTable()
    table.activate(1, handler_a)
    table.activate(2, handler_b)
    assert table.cancel(handler_b) is handler_b
    assert 2 not in table
    assert 1 in table
    assert table.cancel(handler_b) is None


def test_callback_capacity_enforced():
    table = CallbackTable(capacity=2)
    table.activate(1, handler_a)
    table.activate(2, handler_b)
    with pytest.raises(SymbolTableFull):
        table.activate(3, handler_c)


def test_freed_callback_slot_is_reused():
    table = CallbackTable(capacity=2)
    table.activate(1, handler_a)
    table.activate(2, handler_b)
    table.find_by_ref(1)
    assert table.activate(3, handler_c) == 3
    assert table.find_by_ref(3) is handler_c
    assert table.find_by_ref(2) is handler_b


def test_invalid_capacity():
    with pytest.raises(ValueError):
        CallbackTable(capacity=0)


# --- RemoteNodeTable -----------------------------------------------------


def test_remote_register_and_available():
    table = RemoteNodeTable()
    assert table.register(0x10, "print_name") is True
    assert table.available("print_name") is True
    assert table.available("other") is False


def test_remote_duplicate_ignored():
    table = RemoteNodeTable()
    table.register(0x10, "print_name")
    assert table.register(0x10, "print_name") is False
    assert len(table) == 1


def test_same_name_from_two_nodes():
    table = RemoteNodeTable()
    assert table.register(0x10, "f") is True
    assert table.register(0x20, "f") is True
    assert sorted(table) == [(0x10, "f"), (0x20, "f")]


def test_unregister_node_clears_its_functions():
    table = RemoteNodeTable()
    table.register(0x10, "f")
    table.register(0x10, "g")
    table.register(0x20, "g")
    assert table.unregister_node(0x10) == 2
    assert table.available("f") is False
    assert table.available("g") is True
    assert list(table) == [(0x20, "g")]


def test_node_zero_is_never_available():
    table = RemoteNodeTable()
    table.register(0, "f")
    assert table.available("f") is False


def test_cleared_entries_still_count_towards_capacity():
    table = RemoteNodeTable(capacity=2)
    table.register(0x10, "f")
    table.register(0x20, "g")
    table.unregister_node(0x10)
    with pytest.raises(SymbolTableFull):
        table.register(0x30, "h")


def test_reregister_after_unregister():
    table = RemoteNodeTable(capacity=4)
    table.register(0x10, "f")
    table.unregister_node(0x10)
    assert table.register(0x10, "f") is True
    assert table.available("f") is True


# --- FunctionTable -------------------------------------------------------


def test_function_register_and_find():
    table = FunctionTable()
    table.register("print_name", handler_a)
    assert table.find("print_name") is handler_a
    assert table.find("missing") is None
    assert "print_name" in table


def test_function_later_registration_wins():
    table = FunctionTable()
    table.register("f", handler_a)
    table.register("f", handler_b)
    assert table.find("f") is handler_b
    assert table.names() == ["f", "f"]


def test_function_names_in_order():
    table = FunctionTable()
    table.register("x", handler_a)
    table.register("y", handler_b)
    assert table.names() == ["x", "y"]
    assert list(reversed(table)) == [("y", handler_b), ("x", handler_a)]


def test_function_capacity_is_one_less_than_size():
    table = FunctionTable(capacity=3)
    table.register("a", handler_a)
    table.register("b", handler_b)
    with pytest.raises(SymbolTableFull):
        table.register("c", handler_c)
    assert len(table) == 2


def test_default_capacity_used():
    table = FunctionTable()
    assert table.capacity == DEFAULT_CAPACITY
    for index in range(DEFAULT_CAPACITY - 1):
        table.register(f"f{index}", handler_a)
    with pytest.raises(SymbolTableFull):
        table.register("overflow", handler_a)