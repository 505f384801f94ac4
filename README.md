# imagepolicy

`imagepolicy` is a library of policy checks for container images. Each check
looks at one aspect of an image and reports whether the image passes.

## Installing

    pip install .

To run the test suite:

    pip install ".[test]"
    pytest

## The check interface

Every check subclasses `imagepolicy.check.Check` and provides these methods:

- `name()` returns the short name of the check.
- `metadata()` returns a `Metadata` record with `description`, `level`,
  `knowledge_base_url` and `check_url`.
- `help()` returns a `HelpText` record with `message` and `suggestion`.
- `validate(image_ref)` returns `True` when the image passes.

`validate` takes an `ImageReference`. It carries `image_registry`,
`image_repository`, `image_tag_or_sha`, `image_uri`, `image_fs_path` (the path to
the image's extracted filesystem) and `image_info`. `image_info` is an `Image`
holding a `ConfigFile` (`labels`, `user`, `diff_ids`) and a list of `Layer`
objects (`digest`, `diff_id`, and `content` as uncompressed tar bytes).

Most checks also have an `evaluate(...)` method. It applies the policy to data
that has already been gathered, such as a label mapping, a user string, a list
of package names or a list of tags.

## The checks

| Module | Check | Passes when |
| --- | --- | --- |
| `imagepolicy.labels_checks` | `HasRequiredLabelsCheck` | the name, vendor, version, release, summary, description and maintainer labels are all non-empty |
| `imagepolicy.labels_checks` | `HasNoProhibitedLabelsCheck` | the name, vendor and maintainer labels do not misuse the "Red Hat" trademark |
| `imagepolicy.labels_checks` | `HasProhibitedContainerName` | the last path element of the repository does not misuse the trademark |
| `imagepolicy.runtime_checks` | `MaxLayersCheck` | the image has at most 40 layers |
| `imagepolicy.runtime_checks` | `RunAsNonRootCheck` | the configured user is set and is neither `root` nor `0` |
| `imagepolicy.license` | `HasLicenseCheck` | `licenses/` under `image_fs_path` holds at least one non-empty file |
| `imagepolicy.packages` | `HasNoProhibitedPackagesCheck` | no kernel, grub, firmware or `kpatch*` packages are installed |
| `imagepolicy.modified_files` | `HasModifiedFilesCheck` | files installed by RPM were not changed outside RPM in later layers |
| `imagepolicy.ubi` | `BasedOnUBICheck` | the lookup service finds at least one certified image containing the image's layers |
| `imagepolicy.unique_tag` | `HasUniqueTagCheck` | the image has more than one tag, or a single tag other than `latest` |

`imagepolicy.trademark.violates_red_hat_trademark(text)` is the trademark
rule that the label and container-name checks use. Text that starts with a
"Red Hat" variant fails. Any other occurrence also fails, except a single
"for Red Hat".

## Collaborators

Some checks need data that this package cannot produce itself. These checks
take a collaborator when they are built:

- `HasModifiedFilesCheck(package_reader)` and
  `HasNoProhibitedPackagesCheck(package_lister)` take a callable. The callable
  receives a directory holding `var/lib/rpm` and returns `RpmPackage` objects
  (from `imagepolicy.modified_files`).
- `BasedOnUBICheck(layer_hash_checker)` takes a `LayerHashChecker` (from
  `imagepolicy.ubi`). Its `certified_images_containing_layers(hashes)` method
  returns the certified images that contain the given uncompressed layer
  hashes.
- `HasUniqueTagCheck(dockercfg="", tag_lister=None)` can take a tag lister, a
  callable from `"registry/repository"` to tags. Without a tag lister, the check
  queries the registry's `/v2/<repository>/tags/list` endpoint. It follows
  bearer-token challenges and `Link` pagination, and uses basic credentials from
  the docker config file at `dockercfg` when an entry matches the registry.
  `imagepolicy.unique_tag.list_registry_tags(repository, timeout)` does the same
  query without credentials.

## Example

```python
from imagepolicy.check import ConfigFile, Image, ImageReference
from imagepolicy.labels_checks import HasProhibitedContainerName
from imagepolicy.runtime_checks import RunAsNonRootCheck
from imagepolicy.trademark import violates_red_hat_trademark

check = HasProhibitedContainerName()
ref = ImageReference(image_repository="opdev/simple-demo-operator")
print(check.name(), check.validate(ref))   # HasProhibitedContainerName True

image = Image(config_file=ConfigFile(user="1000"))
print(RunAsNonRootCheck().validate(ImageReference(image_info=image)))  # True

print(violates_red_hat_trademark("Something for Red Hat OpenShift"))  # False
print(violates_red_hat_trademark("Red_Hat"))                          # True
```

## Errors

If a check cannot gather the data it needs, `validate` raises `ValueError`
instead of returning `False`. Examples are a missing `image_info`, a failed
registry or lookup query, a tag lookup by digest that finds no tags, and a
missing `etc/os-release` for `HasModifiedFilesCheck`. `HasLicenseCheck` is an
exception: when `licenses/` is missing or is not a directory, it returns
`False`.

## What this package does not do

- It has no reader for the RPM database. `HasNoProhibitedPackagesCheck` raises
  if no `package_lister` is given. `HasModifiedFilesCheck` without a
  `package_reader` treats every layer as having no RPM database.
- It has no client for a certified-image lookup service. You must supply a
  `LayerHashChecker` implementation to `BasedOnUBICheck`.
- It does not pull or unpack images. The caller supplies the `Image`, its layer
  content and the extracted filesystem path.
- It has no command-line tool and no runner that runs a set of checks or
  reports the results.