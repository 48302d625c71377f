import json

from rallyresults.cli import main


HEADER = "SS;Stage name;Nationality;User name;Real name;Group;Car name;time1;time2;time3;Finish realtime;Penalty;Service penalty;Super rally;Progress;Comment"


def test_cli_prints_rally_json(tmp_path, capsys):
    export = tmp_path / "wales.csv"
    export.write_text(
        "\n".join(
            [
                HEADER,
                "1;SS1;EE;driver1;One;group1;car1;;;10.1;;;;;F;",
                "1;SS1;EE;driver2;Two;group1;car2;;;14.9;;;;;F;",
            ]
        ),
        encoding="utf-8",
    )

    assert main([str(export)]) == 0
    payload = json.loads(capsys.readouterr().out)
    assert payload["name"] == "wales"
    assert [d["name"] for d in payload["all_results"]] == ["driver1", "driver2"]
    assert payload["all_results"][1]["results"][0]["stage_position"] == 2


def test_cli_name_override(tmp_path, capsys):
    export = tmp_path / "export.csv"
    export.write_text(HEADER + "\n", encoding="utf-8")

    assert main([str(export), "--name", "Monte Carlo", "--indent", "2"]) == 0
    payload = json.loads(capsys.readouterr().out)
    assert payload["name"] == "Monte Carlo"
    assert payload["stages"] == []


def test_cli_rejects_malformed_and_missing(tmp_path):
    export = tmp_path / "bad.csv"
    export.write_text(HEADER + "\n1;SS1;short\n", encoding="utf-8")

    assert main([str(export)]) == 1
    assert main([str(tmp_path / "missing.csv")]) == 1

    latin1 = tmp_path / "latin1.csv"
    latin1.write_bytes((HEADER + "\n1;SS1;FI;R\u00e4ikk\u00f6nen;Kimi;g;c;;;10.1;;;;;F;\n").encode("latin-1"))
    assert main([str(latin1)]) == 1

    broken = tmp_path / "broken.csv"
    broken.write_text(HEADER + "\n1;SS1;EE;d;d;g;c;;;10.1;;;;;F;broke\rdown\n", encoding="utf-8", newline="")
    assert main([str(broken)]) == 1
