# tests/test_reporter.py
import datetime

from surveyor.config import Config
from surveyor.models import AttributeRecord, ReportTable, TargetFile
from surveyor.reporter import assemble_table, compute_columns, export_table, parse_table, report_filename

BASE_COLUMNS = ["Object Name", "Model Name", "Model Path"]


def make_record(object_id: str, name: str, attributes: dict, file_name: str = "A.ifc") -> AttributeRecord:
    source = TargetFile(id=f"id-{file_name}", name=file_name, path=("Project", "Models"))
    return AttributeRecord(object_id=object_id, object_name=name, object_type="IfcWall", attributes=attributes, source_file=source)


def sample_records():
    return [
        make_record("1", "Wall 1", {"Pset_WallCommon.FireRating": "EI60", "Pset_WallCommon.AcousticRating": "45dB"}),
        make_record("2", "Door 1", {"Pset_DoorCommon.Width": 900}, file_name="B.ifc"),
        make_record("3", "Wall 2", {"Pset_WallCommon.IsExternal": "True"}),
    ]


def test_columns_are_base_order_then_sorted_attributes():
    table = assemble_table(sample_records(), Config(base_column_order=BASE_COLUMNS))
    assert table.columns == (
        "Object Name",
        "Model Name",
        "Model Path",
        "Pset_DoorCommon.Width",
        "Pset_WallCommon.AcousticRating",
        "Pset_WallCommon.FireRating",
        "Pset_WallCommon.IsExternal",
    )


def test_columns_do_not_depend_on_record_order():
    cfg = Config(base_column_order=BASE_COLUMNS)
    records = sample_records()
    assert assemble_table(records, cfg).columns == assemble_table(list(reversed(records)), cfg).columns


def test_user_column_order_is_respected():
    cfg = Config(base_column_order=["Pset_WallCommon.FireRating", "Model Name", "Object Name"])
    table = assemble_table(sample_records(), cfg)
    assert table.columns[:3] == ("Pset_WallCommon.FireRating", "Model Name", "Object Name")
    # A fixed column left out of the base order is still reported, among the discovered ones.
    assert "Model Path" in table.columns[3:]


def test_compute_columns_drops_duplicate_base_columns():
    assert compute_columns([{"b": 1, "a": 2}], ["x", "x", "b"]) == ["x", "b", "a"]


def test_missing_attribute_is_empty_not_shifted():
    table = assemble_table(sample_records(), Config(base_column_order=BASE_COLUMNS))
    door = table.rows[1]
    assert door["Pset_WallCommon.FireRating"] == ""
    assert door["Pset_DoorCommon.Width"] == 900
    assert list(door) == list(table.columns)

    lines = export_table(table).decode("utf-8").splitlines()
    door_cells = lines[2].split(",")
    assert len(door_cells) == len(table.columns)
    assert door_cells[table.columns.index("Pset_DoorCommon.Width")] == "900"


def test_rows_carry_fixed_fields():
    table = assemble_table(sample_records(), Config())
    assert table.rows[0]["Object Name"] == "Wall 1"
    assert table.rows[0]["Model Name"] == "A.ifc"
    assert table.rows[0]["Model Path"] == "Project > Models"


def test_export_quotes_delimiter_and_quote_characters():
    table = ReportTable(columns=["Object Name", "Manufacturer"], rows=[{"Object Name": "Wall", "Manufacturer": 'Acme, "Premium"'}])
    assert export_table(table) == b'Object Name,Manufacturer\nWall,"Acme, ""Premium"""\n'


def test_export_keeps_zero_values():
    table = ReportTable(columns=["a", "b"], rows=[{"a": 0, "b": 1.5}])
    assert export_table(table) == b"a,b\n0,1.5\n"


def test_round_trip_reproduces_table():
    table = ReportTable(
        columns=["Object Name", "Model Name", "Manufacturer", "Notes"],
        rows=[
            {"Object Name": "Wall 1", "Model Name": "A.ifc", "Manufacturer": 'Acme, "Premium"', "Notes": ""},
            {"Object Name": "Door", "Model Name": "B.ifc", "Manufacturer": "", "Notes": "two\nlines"},
        ],
    )
    assert parse_table(export_table(table)) == table


def test_round_trip_with_custom_delimiter():
    table = ReportTable(columns=["a", "b"], rows=[{"a": "x;y", "b": "plain"}])
    data = export_table(table, delimiter=";")
    assert data == b'a;b\n"x;y";plain\n'
    assert parse_table(data, delimiter=";") == table


def test_parse_empty_input():
    assert parse_table(b"") == ReportTable(columns=(), rows=())


def test_report_filename():
    assert report_filename("IFC_Properties_Report", today=datetime.date(2024, 3, 9)) == "IFC_Properties_Report_2024-03-09.csv"
    assert report_filename("Walls", "tsv", today=datetime.date(2024, 12, 31)) == "Walls_2024-12-31.tsv"
