import errno
import os

import pytest

from rgbkit.errors import FatalError, err, errx, warn, warnx


def test_warnx_writes_prefixed_line(capsys):
    warnx("something odd")
    assert capsys.readouterr().err == "warning: something odd\n"


def test_warn_appends_errno_description(capsys):
    warn("opening file", errno.ENOENT)
    expected = f"warning: opening file: {os.strerror(errno.ENOENT)}\n"
    assert capsys.readouterr().err == expected


def test_warn_accepts_oserror(capsys):
    exc = OSError(errno.EACCES, "Permission denied")
    warn("reading", exc)
    assert capsys.readouterr().err == "warning: reading: Permission denied\n"


def test_err_raises_after_printing(capsys):
    with pytest.raises(FatalError) as info:
        err("cannot read", errno.ENOENT)
    assert info.value.status == 1
    assert capsys.readouterr().err == f"error: cannot read: {os.strerror(errno.ENOENT)}\n"


def test_errx_raises_after_printing(capsys):
    with pytest.raises(FatalError) as info:
        errx("giving up")
    assert str(info.value) == "giving up"
    assert capsys.readouterr().err == "error: giving up\n"