import pytest


def ltsv(**fields) -> str:
    return '\t'.join(f'{k}:{v}' for k, v in fields.items())


def access(uri='/', method='GET', status='200', apptime='0.100', size='100', **extra) -> str:
    fields = dict(time='2024-01-01T00:00:00+00:00', method=method, uri=uri,
                  status=status, size=size, apptime=apptime)
    fields.update(extra)
    return ltsv(**fields)


@pytest.fixture
def write_log(tmp_path):
    def _write(lines, name='access.log'):
        path = tmp_path / name
        path.write_text(''.join(line + '\n' for line in lines), encoding='utf-8')
        return str(path)
    return _write
