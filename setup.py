from setuptools import setup, find_packages

with open('VERSION.txt', 'r') as f:
    ver=f.read()

ver = ver.strip()

setup(name = 'fuoco',
      version = ver,
      packages = find_packages(exclude=['tests', 'tests.*']),
      package_data = {
          'fuoco': ['providers.yaml', 'templates/*/*.tf'],
      },
      python_requires = '>=3.9',
      install_requires = [
          'pydantic>=2.0',
          'pyyaml',
      ],
      extras_require = {
          'test': ['pytest'],
      },
      entry_points = {
          'console_scripts': ['fuoco = fuoco:run'],
      },
)
