from setuptools import setup, find_packages
from pathlib import Path

# Read requirements.txt for the install_requires field
with open('requirements.txt') as f:
    requirements = [line for line in f.read().splitlines() if line and not line.startswith('#')]

# Read README.md if it exists
readme_path = Path(__file__).parent / 'README.md'
long_description = readme_path.read_text() if readme_path.exists() else 'Streamcast synchronized content player'

setup(
    name='streamcast_player',
    version='1.0.0',
    description='Display client that plays the scheduled content of a shared Streamcast bundle.',
    long_description=long_description,
    long_description_content_type='text/markdown',
    package_dir={'': 'src'},  # Tells setuptools packages are under src
    packages=find_packages(where='src',),  # Find packages in src
    include_package_data=True,
    install_requires=requirements,
    extras_require={
        'test': ['pytest>=7.0'],
    },
    entry_points={
        'console_scripts': [
            'streamcast-player=streamcast_player.services.streamcast_player_display:main',
            'streamcast-admin=streamcast_player.services.streamcast_admin:main',
        ],
    },
    classifiers=[
        'Programming Language :: Python :: 3',
        'License :: OSI Approved :: MIT License',
        'Operating System :: OS Independent',
    ],
    python_requires='>=3.9'
)
