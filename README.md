# relplz

A library of building blocks for releasing Cargo workspaces:

- compute the next semantic version of a package from its commit messages,
  following the conventional commits rules (`relplz.versioning`,
  `relplz.conventional`);
- upgrade version requirements in dependency declarations
  (`relplz.requirement`);
- generate and update "Keep a Changelog" style changelogs and read the latest
  release back out of them (`relplz.changelog`, `relplz.changelog_parser`);
- drive `git` in a repository: commit, tag, push, inspect history
  (`relplz.git`);
- read and edit `Cargo.toml` manifests while keeping their formatting
  (`relplz.manifest`);
- list workspace members through `cargo metadata` (`relplz.workspace`);
- resolve registry index URLs from Cargo configuration files
  (`relplz.registry`);
- run cargo and wait for a package version to show up in a sparse index
  (`relplz.cargo`);
- load and merge the `release-plz.toml` configuration (`relplz.config`);
- check whether a newer release of the tool exists (`relplz.update_checker`).

Install with `pip install .`; the test suite needs the `test` extra.

## Next version from commits

```python
from relplz.versioning import Version, VersionIncrement

version = Version.parse("1.2.3")
version.next(["my change"])            # 1.2.4: no conventional commit, patch bump
version.next(["feat: make coffee"])    # 1.3.0: a feature bumps the minor
version.next(["feat!: break user"])    # 2.0.0: a breaking change bumps the major

Version.parse("0.2.3").next(["feat!: break user"])      # 0.3.0
Version.parse("0.0.4").next(["feat!: break user"])      # 0.0.5
Version.parse("1.0.0-alpha.2").next(["my change"])      # 1.0.0-alpha.3
Version.parse("1.0.0-alpha").next(["my change"])        # 1.0.0-alpha.1

VersionIncrement.from_commits(version, [])      # None: nothing to release
VersionIncrement.breaking(Version.parse("0.3.3"))  # VersionIncrement.MINOR
```

Build metadata is kept as it is; an empty list of commits leaves the version
unchanged. A breaking change can also be announced by a `BREAKING CHANGE:`
footer. `relplz.conventional.parse_commit` exposes the parsed commit (type,
scope, summary, body, footers) and raises `ConventionalCommitError` for
messages that do not follow the format.

## Dependency requirements

```python
from relplz.requirement import upgrade_requirement
from relplz.versioning import Version

upgrade_requirement("1.0", Version.parse("2.3.4"))    # "2.3"
upgrade_requirement("=1.0.0", Version.parse("1.0.0")) # None: already up to date
```

The result is the new requirement text, or `None` when nothing changes.
Malformed requirements raise `ValueError`; operators other than exact, tilde,
caret and wildcard (such as `>=` or `<`) raise `UnsupportedRequirementError`.

## Changelogs

```python
import datetime

from relplz.changelog import ChangelogBuilder
from relplz.changelog_parser import last_changes_from_str, parse_header

changelog = (
    ChangelogBuilder(["fix: myfix", "simple update"], "1.1.1")
    .with_release_date(datetime.date(2015, 5, 15))
    .build()
)
text = changelog.generate()

newer = ChangelogBuilder(["fix: myfix2"], "1.1.2").build()
updated = newer.prepend(text)

parse_header(updated)            # the "# Changelog ... ## [Unreleased]" header
last_changes_from_str(updated)   # notes of the most recent release
```

Commits are grouped as Added, Changed, Deprecated, Removed, Fixed, Security
and Other. Without a release date, today's UTC date is used.
`with_release_link` turns the version heading into a link. Prepending a
version that is already the latest one in the changelog returns the old text
untouched. The parser raises `ChangelogParseError` when a text holds no
release section.

## Git

```python
from relplz.git import Repo

repo = Repo("path/to/project")
repo.is_clean()                      # raises GitError if there are uncommitted changes
repo.add_all_and_commit("chore: release")
repo.tag("v1.0.0")
repo.tag_exists("v1.0.0")            # True
repo.push("v1.0.0")                  # to the remote the repository was opened with
```

Opening a repository without any commit raises `GitError`. Any failing git
command raises `GitError` with its standard output and error attached.

## Manifests, registries and configuration

```python
from relplz.config import load_config
from relplz.manifest import LocalManifest
from relplz.registry import registry_url
from relplz.versioning import Version

manifest = LocalManifest.find(None)          # search upwards from the current directory
manifest.set_package_version(Version.parse("1.3.0"))
manifest.gc_dep("serde")                     # drop feature activations of a removed dependency
manifest.write()

config = load_config(None)                   # ./release-plz.toml, or the defaults
url = registry_url(manifest.path, None)      # crates.io unless configured otherwise
```

`Config.from_toml` and `Config.to_toml` read and write the configuration;
package entries override the workspace defaults through their `merge`
methods. `relplz.workspace.workspace_members` runs `cargo metadata` and
returns the workspace packages with canonical paths.

## Cargo and the registry index

`relplz.cargo.run_cargo(root, args)` runs cargo (or `$CARGO`), echoes its
standard error and returns the trimmed output and error.
`SparseIndex(url).crate_versions(name)` lists the versions a sparse index
knows, and `wait_until_published(index, package)` polls it until the
package's version appears or the timeout passes.

`relplz.update_checker.check_update(current_version)` queries the latest
published release, prints whether `current_version` is up to date and returns
the latest version.

## What it does not do

relplz is a library only: it installs no command-line program. It does not
open or update release pull requests, talk to GitHub, Gitea or GitLab APIs,
create hosted releases, run `cargo publish` for a workspace, or read git
indexes of registries; it provides the pieces such a workflow is built from.