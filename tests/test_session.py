from funstack import HELP_TEXT, Session


def test_definitions_span_lines():
    s = Session()
    assert s.feed('fun square') == ''
    assert s.continuing
    assert s.feed('  dup *') == ''
    assert s.feed('ret') == ' ok'
    assert not s.continuing
    assert s.feed('fun main 7 square print ret') == ' ok'
    assert s.feed('run') == '49 ok'


def test_loop_spanning_lines():
    s = Session()
    s.feed('fun main 3 while')
    s.feed('  dup print 1 -')
    assert s.continuing
    assert s.feed('end pop ret') == ' ok'
    assert s.feed('run') == '3 2 1 ok'


def test_run_named_entry():
    s = Session()
    s.feed('fun five 5 print ret')
    assert s.feed('run five') == '5 ok'
    assert s.feed('RUN five') == '5 ok'


def test_run_with_no_output():
    s = Session()
    s.feed('fun main ret')
    assert s.feed('run') == 'ok'


def test_words_and_see():
    s = Session()
    s.feed('fun square dup * ret fun main 3 square print ret')
    assert s.feed('words') == 'square  main'
    assert s.feed('see square') == 'fun square dup * ret'
    assert s.feed('see nope') == ' Error: UnknownFunction: see: unknown function nope'
    assert s.feed('see') == ' Error: see needs a name'


def test_redefinition_replaces():
    s = Session()
    s.feed('fun main 1 print ret')
    s.feed('fun main 2 print ret')
    assert s.feed('run') == '2 ok'


def test_duplicate_in_one_chunk_is_an_error():
    s = Session()
    assert s.feed('fun a ret fun a ret').startswith(' Error: DuplicateFunction')
    assert s.feed('words') == ''


def test_parse_error_clears_pending():
    s = Session()
    s.feed('fun main 1')
    assert s.feed('end ret') == ' Error: UnmatchedEnd at line 2, col 1: end without while in main'
    assert not s.continuing


def test_lex_error_clears_pending():
    s = Session()
    s.feed('fun main')
    assert s.feed('1 $ ret').startswith(' Error: UnknownCharacter at line 2, col 3')
    assert not s.continuing


def test_runtime_error_shows_partial_output():
    s = Session()
    s.feed('fun main 1 print nowhere ret')
    assert s.feed('run') == ('1\n Error: UnresolvedCall at line 1, col 18: '
                             'call to undefined function nowhere')


def test_run_without_main():
    assert Session().feed('run') == ' Error: EntryNotFound: no function named main'


def test_reset_and_help():
    s = Session()
    s.feed('fun main ret')
    assert s.feed('reset') == '( Environment reset )\n ok'
    assert s.feed('words') == ''
    assert s.feed('help') == HELP_TEXT
    assert s.feed('   ') == ''


def test_limits_apply_to_runs():
    s = Session(max_steps=50)
    s.feed('fun main 1 while end ret')
    assert 'StepLimitExceeded' in s.feed('run')
