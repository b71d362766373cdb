#! /usr/bin/env python
# -*- coding: utf-8 -*-
"""
seistau - Ray theoretical seismic travel times in layered spherical models.

seistau computes travel times, ray parameters and take-off and incident
angles of arbitrary seismic phases in one dimensional, spherically symmetric
planet models with the tau-p method. Sources and receivers can be placed at
any depth.

:copyright:
    The ObsPy Development Team (devs@obspy.org)
:license:
    GNU Lesser General Public License, Version 3
    (https://www.gnu.org/copyleft/lesser.html)
"""
import sys

from setuptools import find_packages, setup


# The minimum python version which can be used to run seistau
MIN_PYTHON_VERSION = (3, 8)

# Fail fast if the user is on an unsupported version of python.
if sys.version_info < MIN_PYTHON_VERSION:
    msg = ("seistau requires python version >= {}".format(MIN_PYTHON_VERSION) +
           " you are using python version {}".format(sys.version_info))
    print(msg, file=sys.stderr)
    sys.exit(1)

VERSION = "0.1.0"
DOCSTRING = __doc__.split("\n")

INSTALL_REQUIRES = [
    'numpy>=1.20',
]
# Extra dependencies
EXTRAS_REQUIRES = {
    'tests': [
        'pytest',
    ],
}
EXTRAS_REQUIRES['all'] = [dep for depl in EXTRAS_REQUIRES.values()
                          for dep in depl]

KEYWORDS = [
    'iasp91', 'phase', 'ray parameter', 'seismology', 'slowness', 'Tau-P',
    'travel time', 'velocity model']


def setupPackage():
    setup(
        name='seistau',
        version=VERSION,
        description=DOCSTRING[1],
        long_description="\n".join(DOCSTRING[3:]),
        author='The ObsPy Development Team',
        author_email='devs@obspy.org',
        license='GNU Lesser General Public License, Version 3 (LGPLv3)',
        platforms='OS Independent',
        classifiers=[
            'Development Status :: 3 - Alpha',
            'Intended Audience :: Science/Research',
            'Intended Audience :: Developers',
            'License :: OSI Approved :: '
                'GNU Lesser General Public License v3 (LGPLv3)',
            'Operating System :: OS Independent',
            'Programming Language :: Python',
            'Programming Language :: Python :: 3',
            'Topic :: Scientific/Engineering',
            'Topic :: Scientific/Engineering :: Physics'],
        keywords=KEYWORDS,
        packages=find_packages(include=['seistau', 'seistau.*']),
        zip_safe=False,
        python_requires=f'>={MIN_PYTHON_VERSION[0]}.{MIN_PYTHON_VERSION[1]}',
        install_requires=INSTALL_REQUIRES,
        extras_require=EXTRAS_REQUIRES,
    )


if __name__ == '__main__':
    setupPackage()
