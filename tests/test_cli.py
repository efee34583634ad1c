import pytest

import funstack
from funstack import main, run_tests


@pytest.fixture
def script(tmp_path):
    def write(src):
        path = tmp_path / 'prog.fun'
        path.write_text(src, encoding='utf-8')
        return str(path)
    return write


def test_runs_sample(sample_path, capsys):
    assert main([str(sample_path)]) == 0
    assert capsys.readouterr().out == '120\n'


def test_each_value_on_its_own_line(script, capsys):
    assert main([script('fun main 1 print 2 print 3 print ret')]) == 0
    assert capsys.readouterr().out == '1\n2\n3\n'


def test_runtime_error_keeps_partial_output(script, capsys):
    assert main([script('fun main 1 print\n  nowhere ret')]) == 1
    captured = capsys.readouterr()
    assert captured.out == '1\n'
    assert captured.err == ('Error: UnresolvedCall at line 2, col 3: '
                            'call to undefined function nowhere\n')


def test_load_error(script, capsys):
    assert main([script('fun main 1 print')]) == 1
    assert capsys.readouterr().err.startswith('Error: MissingRet at line 1')


def test_unreadable_file(tmp_path, capsys):
    assert main([str(tmp_path / 'missing.fun')]) == 1
    assert 'cannot read' in capsys.readouterr().err


def test_entry_option(script, capsys):
    assert main([script('fun start 9 print ret'), '--entry', 'start']) == 0
    assert capsys.readouterr().out == '9\n'


def test_missing_entry(script, capsys):
    assert main([script('fun start ret')]) == 1
    assert capsys.readouterr().err == 'Error: EntryNotFound: no function named main\n'


def test_see_option(sample_path, capsys):
    assert main([str(sample_path), '--see', 'main']) == 0
    assert capsys.readouterr().out == 'fun main 5 factorial print ret\n'


def test_see_unknown(sample_path, capsys):
    assert main([str(sample_path), '--see', 'nope']) == 1
    assert 'UnknownFunction' in capsys.readouterr().err


def test_check_findings_stop_the_run(script, capsys):
    assert main([script('fun main 5 print nowhere ret'), '--check']) == 1
    captured = capsys.readouterr()
    assert captured.out == ''
    assert captured.err == 'check: main:1: call to undefined function nowhere\n'


def test_check_clean_program_runs(sample_path, capsys):
    assert main([str(sample_path), '--check']) == 0
    assert capsys.readouterr().out == '120\n'


def test_step_budget(sample_path, capsys):
    assert main([str(sample_path), '--max-steps', '10']) == 1
    assert 'StepLimitExceeded' in capsys.readouterr().err


def test_depth_limit(script, capsys):
    assert main([script('fun main f ret fun f ret'), '--max-depth', '1']) == 1
    assert 'DepthExceeded' in capsys.readouterr().err


def test_trace_goes_to_stderr(script, capsys):
    assert main([script('fun main 2 print ret'), '--trace']) == 0
    captured = capsys.readouterr()
    assert captured.out == '2\n'
    assert captured.err == 'main:1 2  []\nmain:1 print  [2]\n'


def test_self_tests_pass(capsys):
    passed, total = run_tests()
    assert passed == total
    assert main(['--test']) == 0
    assert f'Tests: {total}/{total} passed' in capsys.readouterr().out


def test_no_file_starts_the_repl(monkeypatch, capsys):
    lines = iter(['fun main 6 7 * print ret', 'run', 'bye'])
    monkeypatch.setattr('builtins.input', lambda prompt='': next(lines))
    assert main([]) == 0
    out = capsys.readouterr().out
    assert ' ok\n' in out
    assert '42 ok\n' in out


def test_repl_stops_at_end_of_input(monkeypatch, capsys):
    def no_input(prompt=''):
        raise EOFError
    monkeypatch.setattr('builtins.input', no_input)
    funstack.repl()
    assert capsys.readouterr().out.startswith('funstack')


def test_source_that_is_not_utf8(tmp_path, capsys):
    path = tmp_path / 'latin.fun'
    path.write_bytes(b'fun main 1 print ret # \xff\xfe\n')
    assert main([str(path)]) == 1
    captured = capsys.readouterr()
    assert captured.out == ''
    assert captured.err.startswith(f'Error: {path} is not UTF-8 text')


def test_interrupting_a_run_keeps_the_repl_alive(monkeypatch, capsys):
    def interrupted(*args, **kwargs):
        raise KeyboardInterrupt
    lines = iter(['fun main 1 print ret', 'run', 'words', 'bye'])
    monkeypatch.setattr('builtins.input', lambda prompt='': next(lines))
    monkeypatch.setattr(funstack, 'run', interrupted)
    funstack.repl()
    out = capsys.readouterr().out
    assert 'Interrupted - pending input discarded, definitions kept' in out
    assert out.rstrip().endswith('main')
