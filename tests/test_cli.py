from pyhdg.__main__ import main


def test_cli_single_cycle(tmp_path, capsys):
    plot = tmp_path / "conv.png"
    rc = main(["--cycles", "2", "--solver", "direct", "--log-level", "WARNING",
               "--output-dir", str(tmp_path), "--plot", str(plot)])
    assert rc == 0
    out = capsys.readouterr().out
    assert "val L2" in out
    assert (tmp_path / "solution-global-q1-01.vtu").exists()
    assert plot.exists()
