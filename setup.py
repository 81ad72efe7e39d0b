import os.path
import re
import setuptools


def find_version(filename):
    with open(filename) as f:
        text = f.read()
    match = re.search(r"^_version_str = '(.*)'$", text, re.MULTILINE)
    if not match:
        raise RuntimeError('cannot find version')
    return match.group(1)


tld = os.path.abspath(os.path.dirname(__file__))
version = find_version(os.path.join(tld, 'bitscript', '__init__.py'))


setuptools.setup(
    name='bitscript',
    version=version,
    packages=['bitscript'],
    python_requires='>=3.8',
    install_requires=['attrs', 'pycryptodomex', 'coincurve'],
    extras_require={'test': ['pytest']},
    long_description=(
        'Bitcoin script: the script codec, standard templates, signature hashes, '
        'canonical signatures and the script interpreter.'
    ),
)
