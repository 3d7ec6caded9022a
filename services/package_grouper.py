import math
from functools import cmp_to_key

LENGTH_TIE_TOLERANCE = 0.01


def is_large(length, rules):
    return (length or 0) >= rules["large_min_length"]


def package_size(length, rules):
    if is_large(length, rules):
        return rules["large_package_size"]
    return rules["small_package_size"]


def package_count(quantity, length, rules):
    return int(math.ceil(quantity / package_size(length, rules)))


def build_packages(entries, rules):
    packages = []
    for entry_idx, entry in enumerate(entries):
        length = entry["length"]
        large = is_large(length, rules)
        for package_index in range(package_count(entry["quantity"], length, rules)):
            packages.append(
                {
                    "entry": entry_idx,
                    "package_index": package_index,
                    "length": length,
                    "large": large,
                }
            )
    return packages


def _is_medium(length, max_row_length, rules):
    return rules["medium_min_length"] <= length < max_row_length * rules["medium_max_ratio"]


def _is_near_full(length, max_row_length, rules):
    return max_row_length * rules["near_full_ratio"] <= length <= max_row_length


def _package_comparator(max_row_length, rules):
    def compare(a, b):
        a_medium = _is_medium(a["length"], max_row_length, rules)
        b_medium = _is_medium(b["length"], max_row_length, rules)
        if a_medium != b_medium:
            return -1 if a_medium else 1

        # A single near-full package would close a row before combinations are tried.
        a_near_full = _is_near_full(a["length"], max_row_length, rules)
        b_near_full = _is_near_full(b["length"], max_row_length, rules)
        if a_near_full != b_near_full:
            return 1 if a_near_full else -1

        if abs(a["length"] - b["length"]) > LENGTH_TIE_TOLERANCE:
            return -1 if a["length"] > b["length"] else 1

        if a["large"] != b["large"]:
            return -1 if a["large"] else 1
        return 0

    return compare


def order_packages(packages, max_row_length, rules):
    return sorted(packages, key=cmp_to_key(_package_comparator(max_row_length, rules)))


def group_packages(entries, max_row_length, rules):
    return order_packages(build_packages(entries, rules), max_row_length, rules)
