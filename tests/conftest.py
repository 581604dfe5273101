import itertools

import pytest

from django_protector.testing import override_protector_settings
from tests.models import Dummy, Fluffy, Sample

_proxy_names = itertools.count()


def make_proxy(base):
    """Create a throwaway proxy model so each test registers its own rules."""
    index = next(_proxy_names)
    meta = type("Meta", (), {"proxy": True, "app_label": "tests"})
    return type(
        f"{base.__name__}Proxy{index}",
        (base,),
        {"__module__": "tests.models", "Meta": meta},
    )


@pytest.fixture
def dummy():
    return make_proxy(Sample)


@pytest.fixture
def paranoid():
    with override_protector_settings(paranoid=True):
        yield


@pytest.fixture
def adequate():
    with override_protector_settings(paranoid=False):
        yield


@pytest.fixture
def dummies(db):
    first = Dummy.objects.create(string="zomgstring", number=999, text="zomgtext")
    second = Dummy.objects.create(string="zomgstring", number=999, text="zomgtext")
    Dummy.objects.create(string="zomgstring", number=777, text="zomgtext")
    Dummy.objects.create(string="zomgstring", number=777, text="zomgtext")

    for parent in (first, second):
        Fluffy.objects.create(string="zomgstring", number=999, text="zomgtext", dummy=parent)
        Fluffy.objects.create(string="zomgstring", number=777, text="zomgtext", dummy=parent)
    return first, second


@pytest.fixture
def sample(db):
    return Sample.objects.create(string="zomgstring", number=999, text="zomgtext")
