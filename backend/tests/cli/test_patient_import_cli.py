import json

from sqlalchemy import select

from clinic_feedback.models.patient import Patient
from clinic_feedback.scripts import patient_import as patient_import_script

CSV_CONTENT = (
    "ФИО;Телефон;Филиал\n"
    "01.05.2024;;\n"
    "Иванов Иван;998901234567;Ташкент\n"
    "Петров Петр;12345;Ташкент\n"
)


def test_cli_imports_csv(tmp_path, monkeypatch, capsys, db, session_factory):
    path = tmp_path / "patients.csv"
    path.write_text(CSV_CONTENT, encoding="utf-8")
    monkeypatch.setattr(patient_import_script, "SessionLocal", session_factory)

    assert patient_import_script.main([str(path)]) == 0

    report = json.loads(capsys.readouterr().out)
    assert report["imported"] == 1
    assert report["dry_run"] is False
    assert report["errors"][0]["line"] == 4
    [patient] = list(db.scalars(select(Patient)))
    assert patient.checkout_date == "2024-05-01"


def test_cli_dry_run_writes_nothing(tmp_path, monkeypatch, capsys, db, session_factory):
    path = tmp_path / "patients.csv"
    path.write_text(CSV_CONTENT, encoding="utf-8")
    monkeypatch.setattr(patient_import_script, "SessionLocal", session_factory)

    assert patient_import_script.main([str(path), "--dry-run"]) == 0

    assert json.loads(capsys.readouterr().out)["dry_run"] is True
    assert db.scalar(select(Patient)) is None


def test_cli_rejected_file(tmp_path, monkeypatch, capsys, session_factory):
    path = tmp_path / "broken.csv"
    path.write_text("a;b\nc;d\n", encoding="utf-8")
    monkeypatch.setattr(patient_import_script, "SessionLocal", session_factory)

    assert patient_import_script.main([str(path)]) == 1
    assert "Header row not found" in json.loads(capsys.readouterr().out)["rejected"]


def test_cli_missing_file(tmp_path, capsys):
    assert patient_import_script.main([str(tmp_path / "missing.xlsx")]) == 2
    assert "File not found" in capsys.readouterr().err
