from statmirror import (
    KIND_IMAGE,
    KIND_SCRIPT,
    KIND_STYLESHEET,
    extract_page_links,
    extract_resources,
)

PAGE = "https://stat.example.test/example.com/202601/awstats.example.com.html"
DIR = "https://stat.example.test/example.com/202601/"


def test_collects_each_reference_kind_once():
    html = """
    <html><head>
      <link rel="stylesheet" href="style.css">
      <link rel="stylesheet" href="style.css">
      <link rel="icon" href="favicon.ico">
      <script src="/js/awstats_misc_tracker.js"></script>
      <script>var inline = 1;</script>
    </head><body>
      <img src="icon/browser/firefox.png">
      <img src="icon/browser/firefox.png" alt="again">
      <td style="background-image: url('images/bar.png')">x</td>
      <div style="background: url(images/hbar.png) repeat-x; border: 0">y</div>
    </body></html>
    """
    resources = extract_resources(html, PAGE)
    assert len(resources) == 5
    by_kind = {}
    for r in resources:
        by_kind.setdefault(r.kind, []).append(r)
    assert [r.original_reference for r in by_kind[KIND_STYLESHEET]] == ["style.css"]
    assert by_kind[KIND_STYLESHEET][0].absolute_url == DIR + "style.css"
    assert [r.absolute_url for r in by_kind[KIND_SCRIPT]] == [
        "https://stat.example.test/js/awstats_misc_tracker.js"
    ]
    assert {r.original_reference for r in by_kind[KIND_IMAGE]} == {
        "icon/browser/firefox.png",
        "images/bar.png",
        "images/hbar.png",
    }


def test_same_url_under_two_kinds_is_two_entries():
    html = '<img src="logo.png"><p style="background:url(logo.png)"></p>'
    resources = extract_resources(html, PAGE)
    assert len(resources) == 1
    html = '<script src="x.js"></script><img src="x.js">'
    assert len(extract_resources(html, PAGE)) == 2


def test_malformed_and_non_http_references_are_dropped():
    html = """
    <img src="http://[::1">
    <img src="data:image/png;base64,AAAA">
    <script src="javascript:void(0)"></script>
    <img src="">
    <img src="ok.png">
    """
    resources = extract_resources(html, PAGE)
    assert [r.original_reference for r in resources] == ["ok.png"]


def test_base_href_is_honored():
    html = '<head><base href="https://static.example.test/v2/"></head><img src="a.png">'
    (res,) = extract_resources(html, PAGE)
    assert res.absolute_url == "https://static.example.test/v2/a.png"
    assert res.original_reference == "a.png"


def test_link_extractor_excludes_documentation_host():
    html = (
        '<a href="http://www.excluded-docs.example/">ref</a>'
        '<a href="awstats.x.errors404.html">e</a>'
    )
    links = extract_page_links(html, excluded_hosts={"www.excluded-docs.example"})
    assert links == {"awstats.x.errors404.html"}


def test_link_extractor_keeps_only_report_family():
    html = """
    <a href="#top">top</a>
    <a href="awstats.example.com.urldetail.html">urls</a>
    <a href="awstats.example.com.urldetail.html#x">urls again</a>
    <a href="awstats.example.com.errors404.html">404</a>
    <a href="http://www.awstats.org/docs/awstats_glossary.html">glossary</a>
    <a href="http://www.awstats.org/awstats.helper.html">doc page</a>
    <a href="mailto:admin@example.com">mail</a>
    <a href="about.html">about</a>
    <a href="../202512/awstats.example.com.html">previous month</a>
    """
    assert extract_page_links(html) == {
        "awstats.example.com.urldetail.html",
        "awstats.example.com.errors404.html",
    }


def test_link_extractor_resolves_against_page_directory():
    html = """
    <a href="awstats.example.com.keyphrases.html">k</a>
    <a href="https://stat.example.test/example.com/202601/awstats.example.com.refererse.html">r</a>
    <a href="https://stat.example.test/example.com/202512/awstats.example.com.html">old</a>
    <a href="http://awstats.sourceforge.net/awstats.docs.html">docs</a>
    """
    assert extract_page_links(html, PAGE) == {
        "awstats.example.com.keyphrases.html",
        "awstats.example.com.refererse.html",
    }


def test_other_spellings_of_one_asset_are_kept_as_aliases():
    html = (
        '<link rel="stylesheet" href="style.css">'
        '<link rel="stylesheet" href="./style.css">'
        '<link rel="stylesheet" href="style.css">'
    )
    (res,) = extract_resources(html, PAGE)
    assert res.original_reference == "style.css"
    assert res.aliases == ("./style.css",)
    assert res.references == ("style.css", "./style.css")
